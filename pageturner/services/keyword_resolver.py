"""Title-prefix lookup against the catalogue.

Only titles that start with the term match; there is no full-text search.
"""

import logging
from typing import Optional

from pageturner.core.constants import LONG_MIN_PAGES, PREFIX_SENTINEL, SHORT_MAX_PAGES
from pageturner.domain.entities import Page, SearchOptions
from pageturner.domain.repositories import IBookRepository

logger = logging.getLogger(__name__)


def prefix_bounds(term: str) -> tuple[str, str]:
    """Inclusive range covering every lower-cased title starting with ``term``."""
    lower = term.strip().lower()
    return lower, lower + PREFIX_SENTINEL


def page_range(length: Optional[str]) -> tuple[Optional[int], Optional[int]]:
    """Inclusive (min, max) page counts for a length bucket."""
    if length == "short":
        return None, SHORT_MAX_PAGES - 1
    if length == "medium":
        return SHORT_MAX_PAGES, LONG_MIN_PAGES
    if length == "long":
        return LONG_MIN_PAGES + 1, None
    return None, None


class KeywordResolver:

    def __init__(self, book_repository: IBookRepository, page_size: int = 20):
        self.book_repository = book_repository
        self.page_size = page_size

    async def resolve(
        self,
        term: str,
        options: Optional[SearchOptions] = None,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page:
        options = options or SearchOptions()
        lower, upper = prefix_bounds(term)
        min_pages, max_pages = page_range(options.length)
        page = await self.book_repository.search_by_title_prefix(
            lower,
            upper,
            genre=options.genre,
            min_pages=min_pages,
            max_pages=max_pages,
            cursor=cursor,
            limit=page_size or self.page_size,
        )
        logger.info("Keyword lookup %r matched %d books", lower, len(page.items))
        return page
