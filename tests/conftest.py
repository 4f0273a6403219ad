"""Test fixtures for the meeting API.

Provides:
- AsyncCollection: an async facade over a mongomock collection so the real
  MeetingStore (deadline handling, error translation) runs unchanged and
  planner predicates are evaluated by a Mongo-compatible engine
- store: MeetingStore backed by a fresh in-memory collection per test
- client: httpx AsyncClient against the full application (middleware and
  error reporter included) with the in-memory store on app.state
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from typing import Any

import mongomock
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.scheduler.main import create_app
from src.scheduler.meetings.store import MeetingStore


# ── In-Memory Collection ─────────────────────────────────────────────────────


class _AsyncCursor:
    def __init__(self, cursor: Any, delay: float) -> None:
        self._cursor = cursor
        self._delay = delay

    async def to_list(self, length: int | None = None) -> list[dict]:
        await asyncio.sleep(self._delay)
        documents = list(self._cursor)
        return documents if length is None else documents[:length]


class _AsyncDatabase:
    def __init__(self, database: Any) -> None:
        self._database = database

    async def command(self, name: str) -> dict:
        return {"ok": 1.0}


class AsyncCollection:
    """Async facade over a mongomock collection for testing without MongoDB.

    Args:
        collection: mongomock collection holding the documents.
        delay: Seconds every operation sleeps before running, to exercise
            the request deadline.
        error: Exception raised by every operation when set.
    """

    def __init__(self, collection: Any, delay: float = 0.0, error: Exception | None = None) -> None:
        self._collection = collection
        self.delay = delay
        self.error = error
        self.calls: list[str] = []
        self.database = _AsyncDatabase(collection.database)

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def insert_one(self, document: dict) -> Any:
        await self._enter("insert_one")
        return self._collection.insert_one(document)

    def find(self, filter: dict, sort: list | None = None) -> _AsyncCursor:
        self.calls.append("find")
        if self.error is not None:
            raise self.error
        cursor = self._collection.find(filter)
        if sort:
            cursor = cursor.sort(sort)
        return _AsyncCursor(cursor, self.delay)

    async def find_one(self, filter: dict) -> dict | None:
        await self._enter("find_one")
        return self._collection.find_one(filter)

    async def update_one(self, filter: dict, update: dict) -> Any:
        await self._enter("update_one")
        return self._collection.update_one(filter, update)

    async def delete_one(self, filter: dict) -> Any:
        await self._enter("delete_one")
        return self._collection.delete_one(filter)

    async def create_index(self, keys: list, **kwargs: Any) -> str:
        await self._enter("create_index")
        return self._collection.create_index(keys, **kwargs)

    def count(self) -> int:
        return self._collection.count_documents({})


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def collection() -> AsyncCollection:
    """Fresh in-memory meetings collection."""
    return AsyncCollection(mongomock.MongoClient()["Schedule"]["meeting"])


@pytest.fixture
def store(collection) -> MeetingStore:
    return MeetingStore(collection)


@pytest_asyncio.fixture
async def client(store) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for the full app backed by the in-memory store."""
    app = create_app()
    app.state.meeting_store = store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

