from __future__ import annotations

import os

# Settings are read at import time, so configure the environment first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret-with-enough-length-for-hs256")
os.environ.setdefault("OPENROUTER_API_KEY", "test-openrouter-key")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")

import uuid
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.security import create_access_token
from app.db.deps import Base, get_db
from app.models.deck import Deck
from app.services.ai_service.flashcard_ai_service import get_flashcard_ai_service


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Ensure pytest-anyio uses asyncio for all async tests."""
    return "asyncio"


@pytest.fixture(scope="session")
def test_app() -> FastAPI:
    from app.main import app

    return app


@pytest.fixture()
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.sqlite'}", future=True)

    # pysqlite defers BEGIN, which breaks SAVEPOINT; emit it ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def fail_session_calls(db_session: AsyncSession, monkeypatch):
    """Make the Nth explicit `flush`/`commit` on db_session raise OperationalError.

    Only calls made after installing count. Usage: `fail_session_calls("commit", 2)`.
    """

    def _install(method_name: str, *fail_on: int) -> None:
        method = getattr(db_session, method_name)
        calls = 0

        async def _maybe_fail(*args, **kwargs):
            nonlocal calls
            calls += 1
            if calls in fail_on:
                raise OperationalError(method_name.upper(), {}, Exception("database is locked"))
            return await method(*args, **kwargs)

        monkeypatch.setattr(db_session, method_name, _maybe_fail)

    return _install


@pytest.fixture()
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def auth_headers(user_id: uuid.UUID) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user_id))}"}


@pytest.fixture()
async def default_deck(db_session: AsyncSession, user_id: uuid.UUID) -> Deck:
    deck = Deck(user_id=user_id, name="Uncategorized", is_default=True)
    db_session.add(deck)
    await db_session.commit()
    return deck


class FakeFlashcardAIService:
    """Stands in for the OpenRouter-backed service in route tests."""

    def __init__(self):
        self.suggestions: List[Dict[str, str]] = [
            {"front": f"Question {i}", "back": f"Answer {i}"} for i in range(1, 6)
        ]
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, str]] = []

    async def generate_flashcards(self, source_text: str, model: str):
        self.calls.append({"source_text": source_text, "model": model})
        if self.error is not None:
            raise self.error
        return list(self.suggestions)


@pytest.fixture()
def fake_ai_service() -> FakeFlashcardAIService:
    return FakeFlashcardAIService()


@pytest.fixture()
async def client(
    test_app: FastAPI, session_factory, fake_ai_service: FakeFlashcardAIService
) -> AsyncGenerator[AsyncClient, None]:
    async def _get_test_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    test_app.dependency_overrides[get_db] = _get_test_db
    test_app.dependency_overrides[get_flashcard_ai_service] = lambda: fake_ai_service

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client

    test_app.dependency_overrides.clear()
