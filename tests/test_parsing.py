"""Tests for turning provider output into books."""

import pytest

from pageturner.core.constants import PLACEHOLDER_IMAGE_URL
from pageturner.core.errors import BookParseError
from pageturner.infrastructure.llm.parsing import (
    extract_book_array,
    normalize_book,
    parse_books,
    slugify,
    synthetic_book_id,
)


def test_slugify():
    assert slugify("The Hitchhiker's Guide to the Galaxy!") == "the-hitchhiker-s-guide-to-the-galaxy"
    assert slugify("  J.R.R. Tolkien ") == "j-r-r-tolkien"


def test_synthetic_id_shape():
    book_id = synthetic_book_id("Circe", "Madeline Miller")
    prefix, suffix = book_id.rsplit("-", 1)
    assert prefix == "circe-madeline-miller"
    assert len(suffix) == 6
    assert synthetic_book_id("Circe", "Madeline Miller") != book_id


@pytest.mark.parametrize(
    "raw",
    [
        '[{"title": "Circe", "author": "Madeline Miller"}]',
        '```json\n[{"title": "Circe", "author": "Madeline Miller"}]\n```',
        '{"books": [{"title": "Circe", "author": "Madeline Miller"}]}',
        '{"recommendations": [{"title": "Circe", "author": "Madeline Miller"}]}',
        'Here you go:\n[{"title": "Circe", "author": "Madeline Miller"}]\nEnjoy!',
    ],
)
def test_extract_book_array_shapes(raw):
    assert extract_book_array(raw) == [{"title": "Circe", "author": "Madeline Miller"}]


@pytest.mark.parametrize("raw", ["", "no books here", '{"title": "Circe"}', "[broken json"])
def test_extract_book_array_rejects(raw):
    with pytest.raises(BookParseError):
        extract_book_array(raw)


def test_normalize_book_defaults():
    book = normalize_book({"title": " Circe ", "author": "Madeline Miller"})
    assert book.title == "Circe"
    assert book.rating == 0.0
    assert book.review_count == 0
    assert book.page_count == 0
    assert book.publication_date == "Unknown"
    assert book.description == "No description available"
    assert book.image_url == PLACEHOLDER_IMAGE_URL
    assert book.genres == []
    assert book.buy_links == {}
    assert book.source == "ai"


def test_normalize_book_full_record():
    book = normalize_book(
        {
            "title": "Circe",
            "author": "Madeline Miller",
            "publicationDate": "2018",
            "rating": 7,
            "reviewCount": 120,
            "pageCount": 393,
            "genres": ["Fantasy", "", "Mythology"],
            "imageUrl": "https://example.com/circe.jpg",
            "buyLinks": {"amazon": "https://amazon.example/circe", "other": ""},
        }
    )
    assert book.rating == 5.0
    assert book.review_count == 120
    assert book.page_count == 393
    assert book.publication_date == "2018"
    assert book.genres == ["Fantasy", "Mythology"]
    assert book.image_url == "https://example.com/circe.jpg"
    assert book.buy_links == {"amazon": "https://amazon.example/circe"}


@pytest.mark.parametrize(
    "item",
    [
        {"author": "Nobody"},
        {"title": "Orphan"},
        {"title": "  ", "author": "Blank"},
        "just a string",
    ],
)
def test_normalize_book_rejects_incomplete(item):
    assert normalize_book(item) is None


def test_parse_books_drops_incomplete_entries():
    books = parse_books(
        '[{"title": "Circe", "author": "Madeline Miller", "genre": "Fantasy"},'
        ' {"title": "Untitled"}, {"title": "Ove", "author": "Fredrik Backman", "rating": "high"}]'
    )
    assert [b.title for b in books] == ["Circe", "Ove"]
    assert books[0].genres == ["Fantasy"]
    assert books[1].rating == 0.0
