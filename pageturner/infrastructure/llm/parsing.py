"""Turn free-text provider output into :class:`Book` entities."""

import json
import logging
import re
from typing import Any, Optional
from uuid import uuid4

from pageturner.core.constants import PLACEHOLDER_IMAGE_URL
from pageturner.core.errors import BookParseError
from pageturner.domain.entities import Book

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_SLUG_RE = re.compile(r"[^a-z0-9]+")

# Wrapper keys some models put around the array
_ARRAY_KEYS = ("books", "recommendations", "data")


def slugify(value: str) -> str:
    return _SLUG_RE.sub("-", value.lower()).strip("-")


def synthetic_book_id(title: str, author: str) -> str:
    """``slug(title)-slug(author)-<6 random chars>``; providers supply no ids."""
    return f"{slugify(title)}-{slugify(author)}-{uuid4().hex[:6]}"


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def extract_book_array(raw: str) -> list[Any]:
    """Find the JSON array of books in ``raw``.

    Accepts a bare array, an object wrapping one under ``books``,
    ``recommendations`` or ``data``, and either of those embedded in prose
    or a markdown fence.  Anything else raises :class:`BookParseError`.
    """
    text = _FENCE_RE.sub("", (raw or "").strip())
    parsed = _loads(text)
    if parsed is None:
        for pattern in (_ARRAY_RE, _OBJECT_RE):
            match = pattern.search(text)
            if match:
                parsed = _loads(match.group(0))
                if parsed is not None:
                    break
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in _ARRAY_KEYS:
            if isinstance(parsed.get(key), list):
                return parsed[key]
    raise BookParseError()


def _number(value: Any, cast):
    # bool is an int subclass; "true" is not a rating
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return cast(0)
    return cast(value)


def _links(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v}


def normalize_book(item: Any) -> Optional[Book]:
    """Map one provider object onto a :class:`Book`, or None if unusable."""
    if not isinstance(item, dict):
        return None
    title = item.get("title")
    author = item.get("author")
    if not isinstance(title, str) or not title.strip():
        return None
    if not isinstance(author, str) or not author.strip():
        return None
    title, author = title.strip(), author.strip()

    genres = item.get("genres")
    if isinstance(genres, list):
        genres = [str(g) for g in genres if g]
    elif isinstance(item.get("genre"), str) and item["genre"]:
        genres = [item["genre"]]
    else:
        genres = []

    rating = min(max(_number(item.get("rating"), float), 0.0), 5.0)

    return Book(
        id=synthetic_book_id(title, author),
        title=title,
        author=author,
        genres=genres,
        rating=rating,
        review_count=_number(item.get("reviewCount", item.get("review_count")), int),
        page_count=_number(item.get("pageCount", item.get("page_count")), int),
        publication_date=str(item.get("publicationDate") or item.get("publication_date") or "Unknown"),
        description=item.get("description") or "No description available",
        image_url=item.get("imageUrl") or item.get("image") or PLACEHOLDER_IMAGE_URL,
        buy_links=_links(item.get("buyLinks")),
        read_links=_links(item.get("readLinks")),
        source="ai",
    )


def parse_books(raw: str) -> list[Book]:
    """Parse provider output into books; raises :class:`BookParseError` if no array."""
    items = extract_book_array(raw)
    books = [b for b in (normalize_book(i) for i in items) if b is not None]
    if len(books) < len(items):
        logger.info("Dropped %d provider entries without title/author", len(items) - len(books))
    return books
