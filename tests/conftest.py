import asyncio
from collections.abc import AsyncGenerator
from typing import Optional
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from pageturner.core.redis_client import get_redis
from pageturner.domain.entities import Book
from pageturner.domain.repositories import ILLMService
from pageturner.infrastructure.database.connection import (
    create_engine,
    create_session_maker,
    init_db,
)
from pageturner.infrastructure.database.repository import BookRepository
from pageturner.infrastructure.llm.services import MockLLMService
from pageturner.main import app
from pageturner.services.session_feedback import SessionFeedbackStore

BASE = "http://test"


class ScriptedLLM(ILLMService):
    """Provider double: returns ``reply``, raises ``exc`` or sleeps ``delay`` seconds."""

    def __init__(self, reply: str = "[]", exc: Optional[Exception] = None, delay: float = 0):
        self.reply = reply
        self.exc = exc
        self.delay = delay
        self.calls: list[list[dict[str, str]]] = []

    async def complete(self, messages, *, max_tokens, temperature):
        self.calls.append(messages)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc:
            raise self.exc
        return self.reply


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


# ── Database ───────────────────────────────────────


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as s:
        yield s


@pytest.fixture
def make_book():
    def _make(title: str, **kwargs) -> Book:
        kwargs.setdefault("author", "Test Author")
        return Book(id=kwargs.pop("id", f"book-{uuid4().hex[:8]}"), title=title, **kwargs)

    return _make


@pytest.fixture
def seed_books(session_maker):
    """Insert books through the repository and return them."""

    async def _seed(*books: Book) -> list[Book]:
        async with session_maker() as s:
            repo = BookRepository(s)
            return [await repo.create(b) for b in books]

    return _seed


# ── Application ────────────────────────────────────


@pytest.fixture
def redis_mock():
    client = AsyncMock()
    client.incr.return_value = 1
    client.exists.return_value = 0
    return client


@pytest.fixture
def llm():
    return MockLLMService()


@pytest.fixture
async def client(session_maker, redis_mock, llm):
    app.state.session_maker = session_maker
    app.state.llm_service = llm
    app.state.feedback_store = SessionFeedbackStore()
    app.dependency_overrides[get_redis] = lambda: redis_mock
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=BASE) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def auth_client(client: AsyncClient):
    """Register a user and return a client with auth headers."""
    email = f"test_{uuid4().hex[:8]}@example.com"
    username = f"user_{uuid4().hex[:8]}"
    await client.post(
        "/auth/signup",
        json={"email": email, "username": username, "password": "securepass123"},
    )
    resp = await client.post(
        "/auth/login",
        json={"email": email, "password": "securepass123"},
    )
    token = resp.json()["access_token"]
    client.headers["Authorization"] = f"Bearer {token}"
    return client
