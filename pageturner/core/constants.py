"""Catalogue vocabularies and user-facing messages."""

GENRES = [
    "Fiction",
    "Non-Fiction",
    "Science Fiction",
    "Fantasy",
    "Mystery",
    "Thriller",
    "Romance",
    "Historical Fiction",
    "Biography",
    "Self-Help",
    "Horror",
    "Adventure",
    "Young Adult",
    "Children's",
    "Poetry",
    "Comics & Graphic Novels",
    "Drama",
    "Dystopian",
    "Memoir",
    "True Crime",
]

MOODS = [
    "Happy",
    "Sad",
    "Uplifting",
    "Dark",
    "Funny",
    "Romantic",
    "Thrilling",
    "Relaxing",
    "Inspiring",
    "Thought-provoking",
    "Adventurous",
    "Nostalgic",
    "Mysterious",
    "Emotional",
]

# Page-count buckets: short < 300, medium 300..500, long > 500
SHORT_MAX_PAGES = 300
LONG_MIN_PAGES = 500
LENGTHS = ("short", "medium", "long")

PLACEHOLDER_IMAGE_URL = "/images/default-book-cover.jpg"

# Array-contains-any style genre filters are capped at ten values
MAX_GENRE_FILTER_VALUES = 10

# Prefix range upper bound sentinel (highest BMP private-use code point)
PREFIX_SENTINEL = "\uf8ff"

MESSAGES = {
    "general": "Something went wrong. Please try again.",
    "auth_required": "You need to be logged in to perform this action.",
    "invalid_credentials": "Invalid email or password.",
    "email_in_use": "This email address is already in use.",
    "search_empty": "Please enter a search term.",
    "no_results": "No books found matching your search.",
    "recommendations_failed": "Failed to get recommendations. Please try again.",
    "book_not_found": "Book not found.",
    "review_exists": "You have already reviewed this book.",
    "provider_error": "The recommendation service is unavailable. Please try again later.",
    "feedback_received": "Thank you for your feedback!",
}


def length_category(page_count: int | None) -> str | None:
    """Map a page count onto the short/medium/long bucket (None when unknown)."""
    if not page_count:
        return None
    if page_count < SHORT_MAX_PAGES:
        return "short"
    if page_count <= LONG_MIN_PAGES:
        return "medium"
    return "long"
