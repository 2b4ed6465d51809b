"""Unit tests for routing, keyword lookup, the AI resolver, the cache and fallbacks."""

import json
from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import httpx
import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from pageturner.core.errors import ErrorCategory
from pageturner.domain.entities import Page, SearchOptions, User
from pageturner.domain.results import EmptyResult, Ok, ParseError, ProviderError
from pageturner.infrastructure.database.models import SearchStatModel
from pageturner.infrastructure.database.repository import (
    BookRepository,
    HistoryRepository,
    SearchCacheRepository,
    SearchStatsRepository,
    UserPreferenceRepository,
    UserRepository,
)
from pageturner.services.ai_resolver import AIResolver
from pageturner.services.fallback import FallbackProvider
from pageturner.services.keyword_resolver import KeywordResolver, page_range, prefix_bounds
from pageturner.services.search_cache import SearchCache, make_cache_key
from pageturner.services.search_service import QueryRouter, Route, SearchService

DUNE = json.dumps(
    [
        {"title": "Dune", "author": "Frank Herbert", "genre": "Science Fiction", "pageCount": 612},
        {"title": "Hyperion", "author": "Dan Simmons", "genres": ["Science Fiction"], "rating": 4.2},
    ]
)


def build_search_service(session, llm, *, timeout: float = 30.0, persist: bool = True) -> SearchService:
    book_repo = BookRepository(session)
    cache = SearchCache(SearchCacheRepository(session), 86400)
    return SearchService(
        router=QueryRouter(3),
        keyword_resolver=KeywordResolver(book_repo, page_size=20),
        ai_resolver=AIResolver(llm, cache, timeout=timeout),
        fallback=FallbackProvider(book_repo, limit=12),
        book_repository=book_repo,
        stats_repository=SearchStatsRepository(session),
        history_repository=HistoryRepository(session),
        preference_repository=UserPreferenceRepository(session),
        persist_ai_books=persist,
    )


# ── Query router ───────────────────────────────────


@pytest.mark.parametrize(
    "query,options,expected",
    [
        ("", None, Route.POPULAR),
        ("   ", None, Route.POPULAR),
        ("a", None, Route.KEYWORD),
        ("abc", None, Route.KEYWORD),
        (" abc ", SearchOptions(time_frame="recent"), Route.KEYWORD),
        ("abcd", None, Route.AI),
        ("abc", SearchOptions(genre="Fantasy"), Route.AI),
        ("ab", SearchOptions(mood="Happy"), Route.AI),
        ("ab", SearchOptions(length="short"), Route.AI),
    ],
)
def test_route(query, options, expected):
    assert QueryRouter(3).route(query, options) is expected


# ── Keyword resolver ───────────────────────────────


def test_prefix_bounds_lowercases():
    assert prefix_bounds(" The ") == ("the", "the\uf8ff")


def test_page_range_buckets():
    assert page_range("short") == (None, 299)
    assert page_range("medium") == (300, 500)
    assert page_range("long") == (501, None)
    assert page_range(None) == (None, None)


async def test_single_letter_lookup_uses_prefix_range():
    repo = AsyncMock()
    repo.search_by_title_prefix.return_value = Page(items=[])
    page = await KeywordResolver(repo, page_size=20).resolve("A")

    assert page.items == []
    repo.search_by_title_prefix.assert_awaited_once_with(
        "a", "a\uf8ff", genre=None, min_pages=None, max_pages=None, cursor=None, limit=20
    )


async def test_keyword_results_ordered_by_rating(session, seed_books, make_book):
    await seed_books(
        make_book("Alpha", rating=4.0),
        make_book("apple pie", rating=4.9),
        make_book("Beta", rating=5.0),
        make_book("Aardvark", rating=4.0),
    )
    page = await KeywordResolver(BookRepository(session)).resolve("a")

    assert [b.title for b in page.items][0] == "apple pie"
    assert {b.title for b in page.items} == {"Alpha", "apple pie", "Aardvark"}
    assert page.has_more is False
    assert page.next_cursor is None


async def test_keyword_cursor_pagination(session, seed_books, make_book):
    await seed_books(
        make_book("The One", id="b1", rating=4.0),
        make_book("The Two", id="b2", rating=4.0),
        make_book("The Three", id="b3", rating=3.0),
    )
    resolver = KeywordResolver(BookRepository(session), page_size=2)

    first = await resolver.resolve("the")
    assert [b.id for b in first.items] == ["b1", "b2"]
    assert first.has_more is True
    assert first.next_cursor == "b2"

    second = await resolver.resolve("the", cursor=first.next_cursor)
    assert [b.id for b in second.items] == ["b3"]
    assert second.has_more is False


async def test_keyword_filters(session, seed_books, make_book):
    await seed_books(
        make_book("Ink 300", page_count=300, genres=["Fantasy"]),
        make_book("Ink 500", page_count=500, genres=["Mystery"]),
        make_book("Ink 299", page_count=299, genres=["Fantasy"]),
        make_book("Ink 501", page_count=501, genres=["Fantasy"]),
    )
    resolver = KeywordResolver(BookRepository(session))

    medium = await resolver.resolve("ink", SearchOptions(length="medium"))
    assert {b.title for b in medium.items} == {"Ink 300", "Ink 500"}

    short = await resolver.resolve("ink", SearchOptions(length="short"))
    assert [b.title for b in short.items] == ["Ink 299"]

    long_fantasy = await resolver.resolve("ink", SearchOptions(length="long", genre="Fantasy"))
    assert [b.title for b in long_fantasy.items] == ["Ink 501"]


# ── Cache ──────────────────────────────────────────


def test_cache_key_is_normalised_and_stable():
    key = make_cache_key("  Cozy Mystery ", SearchOptions(mood="Happy", genre="Mystery"))
    assert key == make_cache_key("cozy mystery", SearchOptions(genre="Mystery", mood="Happy"))
    assert len(key) == 40
    assert key != make_cache_key("cozy mystery", SearchOptions(genre="Mystery"))


async def test_cache_hit_before_expiry_and_miss_after(session, make_book):
    now = datetime(2024, 1, 1, 12, 0)
    clock = {"now": now}
    repo = SearchCacheRepository(session)
    cache = SearchCache(repo, 86400, clock=lambda: clock["now"])
    options = SearchOptions(genre="Fantasy")

    entry = await cache.put("dragons", options, [make_book("Dragonflight")])

    clock["now"] = now + timedelta(hours=23)
    hit = await cache.get("Dragons ", options)
    assert [b.title for b in hit] == ["Dragonflight"]

    clock["now"] = now + timedelta(hours=24)
    assert await cache.get("dragons", options) is None
    stale = await repo.get(entry.key)
    assert stale is not None
    assert stale.results[0].title == "Dragonflight"


# ── AI resolver ────────────────────────────────────


async def test_ai_resolver_parses_and_caches(session, scripted_llm):
    llm = scripted_llm(reply=DUNE)
    resolver = AIResolver(llm, SearchCache(SearchCacheRepository(session), 86400))

    result = await resolver.resolve("epic desert politics")
    assert isinstance(result, Ok)
    assert result.from_cache is False
    dune = result.books[0]
    assert dune.genres == ["Science Fiction"]
    assert dune.page_count == 612
    assert dune.source == "ai"
    assert dune.id.startswith("dune-frank-herbert-")

    again = await resolver.resolve("Epic desert politics")
    assert isinstance(again, Ok) and again.from_cache is True
    assert [b.title for b in again.books] == ["Dune", "Hyperion"]
    assert len(llm.calls) == 1

    await resolver.resolve("epic desert politics", use_cache=False)
    assert len(llm.calls) == 2


async def test_ai_resolver_prompt_mentions_options(scripted_llm):
    llm = scripted_llm(reply=DUNE)
    await AIResolver(llm).resolve(
        "something cosy", SearchOptions(genre="Mystery", mood="Relaxing", length="short")
    )
    prompt = "\n".join(m["content"] for m in llm.calls[0])
    assert "something cosy" in prompt
    assert "Mystery" in prompt
    assert "Relaxing" in prompt


async def test_ai_resolver_timeout(scripted_llm):
    result = await AIResolver(scripted_llm(reply=DUNE, delay=1), timeout=0.01).resolve("slow query")
    assert isinstance(result, ProviderError)
    assert result.category is ErrorCategory.NETWORK
    assert result.code == "network/timeout"


async def test_ai_resolver_malformed_output(scripted_llm):
    result = await AIResolver(scripted_llm(reply="Sorry, I cannot help with that.")).resolve("books")
    assert isinstance(result, ParseError)


@pytest.mark.parametrize("reply", ["[]", '[{"title": "No Author"}]', '{"books": []}'])
async def test_ai_resolver_empty(scripted_llm, reply):
    result = await AIResolver(scripted_llm(reply=reply)).resolve("books about nothing")
    assert isinstance(result, EmptyResult)


async def test_ai_resolver_connection_error(scripted_llm):
    llm = scripted_llm(exc=httpx.ConnectError("connection refused"))
    result = await AIResolver(llm).resolve("books")
    assert isinstance(result, ProviderError)
    assert result.code == "network/no-connection"


# ── Fallback ───────────────────────────────────────


async def test_popular_orders_by_rating_then_reviews(session, seed_books, make_book):
    await seed_books(
        make_book("Low", rating=3.0),
        make_book("High few", rating=4.5, review_count=1),
        make_book("High many", rating=4.5, review_count=50),
    )
    books, from_store = await FallbackProvider(BookRepository(session)).popular()
    assert from_store is True
    assert [b.title for b in books] == ["High many", "High few", "Low"]


async def test_static_list_when_store_fails():
    repo = AsyncMock()
    repo.list_popular.side_effect = OperationalError("SELECT", {}, Exception("database is down"))
    provider = FallbackProvider(repo)

    books, from_store = await provider.popular()
    assert from_store is False
    assert [b.title for b in books] == ["To Kill a Mockingbird", "1984"]

    books, _ = await provider.popular(1)
    assert [b.id for b in books] == ["fallback-1"]

    books, _ = await provider.popular(0)
    assert books == []


# ── Search service ─────────────────────────────────


async def test_provider_timeout_degrades_to_popular(session, seed_books, make_book, scripted_llm):
    await seed_books(*(make_book(f"Book {i}", rating=i / 4) for i in range(15)))
    service = build_search_service(session, scripted_llm(reply=DUNE, delay=1), timeout=0.01)

    outcome = await service.search("something uplifting", SearchOptions(mood="Uplifting"))
    assert outcome.source == "popular"
    assert 0 < len(outcome.books) <= 12
    assert outcome.books[0].title == "Book 14"


async def test_malformed_output_degrades_to_popular(session, seed_books, make_book, scripted_llm):
    await seed_books(make_book("Popular One", rating=4.9))
    service = build_search_service(session, scripted_llm(reply="not json at all"))

    outcome = await service.search("a long free text query")
    assert outcome.source == "popular"
    assert [b.title for b in outcome.books] == ["Popular One"]


async def test_short_query_without_matches_serves_popular(session, seed_books, make_book, scripted_llm):
    await seed_books(make_book("Zebra", rating=4.0))
    llm = scripted_llm(reply=DUNE)
    outcome = await build_search_service(session, llm).search("qq")
    assert outcome.source == "popular"
    assert llm.calls == []


async def test_short_query_keyword_route(session, seed_books, make_book, scripted_llm):
    await seed_books(make_book("Emma", rating=4.0))
    llm = scripted_llm(reply=DUNE)
    outcome = await build_search_service(session, llm).search("em")
    assert outcome.source == "keyword"
    assert [b.title for b in outcome.books] == ["Emma"]
    assert llm.calls == []


async def test_ai_books_are_persisted_then_served_from_cache(session, scripted_llm):
    user = await UserRepository(session).create(
        User(id=uuid4(), username="reader", email="reader@example.com", hashed_password="x")
    )
    service = build_search_service(session, scripted_llm(reply=DUNE))

    outcome = await service.search("sand worms and spice", user=user)
    assert outcome.source == "ai"
    stored = await BookRepository(session).get_by_id(outcome.books[0].id)
    assert stored is not None
    assert stored.search_queries == ["sand worms and spice"]

    again = await service.search("Sand worms and spice ")
    assert again.source == "cache"

    history = await HistoryRepository(session).list_for_user(user.id, "search")
    assert history[0].query == "sand worms and spice"
    assert history[0].book_ids == [b.id for b in outcome.books]

    assert await SearchStatsRepository(session).trending(5) == ["sand worms and spice"]


async def test_ai_books_not_persisted_when_disabled(session, scripted_llm):
    service = build_search_service(session, scripted_llm(reply=DUNE), persist=False)
    outcome = await service.search("sand worms and spice")
    assert outcome.source == "ai"
    assert await BookRepository(session).get_by_id(outcome.books[0].id) is None


async def test_regenerate_skips_cache(session, scripted_llm):
    llm = scripted_llm(reply=DUNE)
    service = build_search_service(session, llm)
    await service.search("sand worms and spice")
    outcome = await service.search("sand worms and spice", regenerate=True)
    assert outcome.source == "ai"
    assert len(llm.calls) == 2


async def test_failed_write_leaves_session_usable(session, seed_books, make_book):
    [book] = await seed_books(make_book("Existing", rating=4.0))
    repo = BookRepository(session)
    with pytest.raises(IntegrityError):
        await repo.create(make_book("Duplicate", id=book.id))
    assert [b.title for b in await repo.list_popular(5)] == ["Existing"]


async def test_concurrent_first_search_still_serves_popular(
    session, session_maker, seed_books, make_book, scripted_llm, monkeypatch
):
    await seed_books(make_book("Popular One", rating=4.9))
    real_get = session.get

    async def get_racing_insert(model, key, **kwargs):
        found = await real_get(model, key, **kwargs)
        if model is SearchStatModel and found is None:
            # Another request records the same first-time query in between
            async with session_maker() as other:
                other.add(SearchStatModel(query=key, count=1, users=[]))
                await other.commit()
        return found

    monkeypatch.setattr(session, "get", get_racing_insert)
    llm = scripted_llm(reply=DUNE)
    outcome = await build_search_service(session, llm).search("cosy mysteries")

    assert outcome.source == "popular"
    assert [b.title for b in outcome.books] == ["Popular One"]
    assert llm.calls == []
