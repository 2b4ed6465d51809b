"""Structured, reusable prompt templates for LLM interactions.

Every recommendation call renders one of the templates below, so prompt
wording lives in one place and the resolvers only supply values.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from pageturner.domain.entities import Book, SearchOptions, UserPreferences


@dataclass(frozen=True)
class PromptTemplate:
    """A reusable prompt template with named placeholders.

    Usage::

        tpl = PromptTemplate(
            name="similar_books",
            system="You are a literary assistant.",
            user="Recommend books similar to {title}.",
        )
        messages = tpl.render(title="Dune")
    """

    name: str
    system: str
    user: str
    description: str = ""
    version: str = "1.0"
    tags: list[str] = field(default_factory=list)

    # ------------------------------------------------------------------
    def render(self, **kwargs: Any) -> list[dict[str, str]]:
        """Return an OpenAI-style messages list with placeholders filled."""
        return [
            {"role": "system", "content": self.system.format(**kwargs)},
            {"role": "user", "content": self.user.format(**kwargs)},
        ]

    def render_flat(self, **kwargs: Any) -> str:
        """Return a single-string prompt (system + user) for simpler APIs."""
        sys_text = self.system.format(**kwargs)
        usr_text = self.user.format(**kwargs)
        return f"{sys_text}\n\n{usr_text}"


SYSTEM_ROLE = (
    "You are a knowledgeable literary assistant that recommends books. "
    "Provide recommendations as structured JSON data."
)

BOOK_FIELDS_INSTRUCTION = (
    "For each book, provide the following information in valid JSON format: "
    "title, author, publicationDate, rating (1-5), reviewCount, description, "
    "genres (array), pageCount, imageUrl (a URL if available), and where to "
    "purchase or read the book as buyLinks and readLinks objects."
)


# =========================================================================
# Pre-defined prompts
# =========================================================================

BOOK_RECOMMENDATION_PROMPT = PromptTemplate(
    name="book_recommendation",
    description="Recommend books for a free-text query with optional filters.",
    version="1.0",
    tags=["search", "recommendation"],
    system=SYSTEM_ROLE,
    user=(
        "Recommend books that match the following criteria: {criteria}. "
        + BOOK_FIELDS_INSTRUCTION
        + " Return at least 5 books if possible. "
        "Format your response as a JSON array of book objects."
    ),
)

SIMILAR_BOOKS_PROMPT = PromptTemplate(
    name="similar_books",
    description="Recommend books similar to one catalogue book.",
    version="1.0",
    tags=["similar", "recommendation"],
    system=SYSTEM_ROLE,
    user=(
        'Please recommend books similar to "{title}" by {author}.\n'
        "This book is in the {genres} genre(s).\n"
        "Brief description: {description}\n\n"
        "Please suggest {count} similar books that readers might enjoy. "
        + BOOK_FIELDS_INSTRUCTION
        + "\nFormat your response as a JSON array of objects with these fields."
    ),
)

HISTORY_RECOMMENDATION_PROMPT = PromptTemplate(
    name="history_recommendation",
    description="Recommend books from a user's recent activity and preferences.",
    version="1.0",
    tags=["personalized", "recommendation"],
    system=SYSTEM_ROLE,
    user=(
        "Please recommend books based on the user's reading history and preferences.\n"
        "Recent books: {recent_books}\n"
        "{preference_lines}"
        "Please provide 6-10 book recommendations. "
        + BOOK_FIELDS_INSTRUCTION
        + " Format your response as a JSON array of book objects."
    ),
)


def describe_criteria(
    query: str, options: SearchOptions, preferences: Optional[UserPreferences] = None
) -> str:
    """Turn a query, its filters and the user's taste into one sentence fragment."""
    text = query
    if options.genre:
        text += f" in the {options.genre} genre"
    if options.length:
        text += f" that are {options.length} in length"
    if options.mood:
        text += f" with a {options.mood} mood"
    if options.time_frame:
        text += f" published {options.time_frame}"
    if preferences:
        likes = []
        if preferences.favorite_genres:
            likes.append(f"genres like {', '.join(preferences.favorite_genres)}")
        if preferences.favorite_authors:
            likes.append(f"authors like {', '.join(preferences.favorite_authors)}")
        if preferences.preferred_length:
            likes.append(f"{preferences.preferred_length} length books")
        if preferences.preferred_moods:
            likes.append(f"moods like {', '.join(preferences.preferred_moods)}")
        if likes:
            text += ". Consider that the user has shown preference for " + ", ".join(likes)
    return text


def render_similar(book: Book, count: int) -> list[dict[str, str]]:
    return SIMILAR_BOOKS_PROMPT.render(
        title=book.title,
        author=book.author,
        genres=", ".join(book.genres) or "unknown",
        description=book.description or "Not available",
        count=count,
    )


def render_history(
    recent: list[Book], preferences: Optional[UserPreferences]
) -> list[dict[str, str]]:
    recent_books = "; ".join(
        f'"{b.title}" by {b.author} ({", ".join(b.genres)})' for b in recent
    )
    lines = ""
    if preferences and preferences.favorite_genres:
        lines += f"Favorite genres: {', '.join(preferences.favorite_genres)}\n"
    if preferences and preferences.preferred_length:
        lines += f"Preferred length: {preferences.preferred_length}\n"
    return HISTORY_RECOMMENDATION_PROMPT.render(
        recent_books=recent_books or "none", preference_lines=lines
    )
