"""Popular books, and the static list served when even those cannot be read."""

import logging

from sqlalchemy.exc import SQLAlchemyError

from pageturner.domain.entities import Book
from pageturner.domain.repositories import IBookRepository

logger = logging.getLogger(__name__)

STATIC_FALLBACK_BOOKS = (
    Book(
        id="fallback-1",
        title="To Kill a Mockingbird",
        author="Harper Lee",
        genres=["Fiction", "Historical Fiction", "Classic"],
        rating=4.8,
        review_count=10345,
        page_count=324,
        publication_date="1960",
        description=(
            "A classic of American literature that deals with serious issues of racial "
            "inequality and moral growth during the Great Depression in Alabama."
        ),
        image_url="https://m.media-amazon.com/images/I/71FxgtFKcQL._AC_UF1000,1000_QL80_.jpg",
        buy_links={
            "amazon": "https://www.amazon.com/Kill-Mockingbird-Harper-Lee/dp/0060935464",
            "barnesNoble": "https://www.barnesandnoble.com/w/to-kill-a-mockingbird-harper-lee/1100151011",
        },
        read_links={"goodreads": "https://www.goodreads.com/book/show/2657.To_Kill_a_Mockingbird"},
    ),
    Book(
        id="fallback-2",
        title="1984",
        author="George Orwell",
        genres=["Fiction", "Science Fiction", "Dystopian"],
        rating=4.6,
        review_count=8976,
        page_count=328,
        publication_date="1949",
        description=(
            "A dystopian novel set in a totalitarian society where government "
            "surveillance and propaganda are pervasive."
        ),
        image_url="https://m.media-amazon.com/images/I/71mUkWzBgyL._AC_UF1000,1000_QL80_.jpg",
        buy_links={
            "amazon": "https://www.amazon.com/1984-Signet-Classics-George-Orwell/dp/0451524934",
            "barnesNoble": "https://www.barnesandnoble.com/w/1984-george-orwell/1100009100",
        },
        read_links={"goodreads": "https://www.goodreads.com/book/show/5470.1984"},
    ),
)


class FallbackProvider:

    def __init__(self, book_repository: IBookRepository, limit: int = 12):
        self.book_repository = book_repository
        self.limit = limit

    async def popular(self, limit: int | None = None) -> tuple[list[Book], bool]:
        """Return ``(books, from_store)``; ``from_store`` is False for the static list."""
        limit = self.limit if limit is None else limit
        try:
            return await self.book_repository.list_popular(limit), True
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Popular books query failed, serving static list: %s", exc)
            return list(STATIC_FALLBACK_BOOKS[:limit]), False
