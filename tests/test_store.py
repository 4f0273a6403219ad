"""Unit tests for MeetingStore: identifiers, deadlines and error translation."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import (
    DuplicateKeyError,
    ExecutionTimeout,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from src.scheduler.core.deadline import reset_deadline, start_deadline
from src.scheduler.core.errors import BackendError, Conflict, DeadlineExceeded
from src.scheduler.meetings.store import CONFIRMED_INDEX_NAME, MeetingStore


def _mock_collection() -> MagicMock:
    collection = MagicMock()
    collection.insert_one = AsyncMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.update_one = AsyncMock()
    collection.delete_one = AsyncMock()
    collection.create_index = AsyncMock()
    return collection


# ── Operations ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_insert_assigns_opaque_id(store, collection):
    meeting_id = await store.insert_one({"_id": "client", "title": "Sync"})
    assert meeting_id != "client"
    assert len(meeting_id) == 32
    assert await store.find_one({"_id": meeting_id}) == {"_id": meeting_id, "title": "Sync"}


@pytest.mark.asyncio
async def test_update_and_delete_counts(store):
    meeting_id = await store.insert_one({"title": "Sync"})

    outcome = await store.update_one({"_id": meeting_id}, {"$set": {"title": "Standup"}})
    assert (outcome.matched_count, outcome.modified_count) == (1, 1)

    missing = await store.update_one({"_id": "nope"}, {"$set": {"title": "x"}})
    assert missing.matched_count == 0

    assert await store.delete_one({"_id": meeting_id}) == 1
    assert await store.delete_one({"_id": meeting_id}) == 0


@pytest.mark.asyncio
async def test_find_many_sorted(store):
    await store.insert_one({"title": "late", "starttime": "2024-01-01T11:00Z"})
    await store.insert_one({"title": "early", "starttime": "2024-01-01T09:00Z"})

    documents = await store.find_many({}, sort=[("starttime", 1), ("_id", 1)])
    assert [d["title"] for d in documents] == ["early", "late"]


@pytest.mark.asyncio
async def test_ensure_indexes_creates_partial_unique_index():
    collection = _mock_collection()
    await MeetingStore(collection).ensure_indexes()

    collection.create_index.assert_awaited_once_with(
        [("confirmed", 1), ("starttime", 1)],
        name=CONFIRMED_INDEX_NAME,
        unique=True,
        partialFilterExpression={"confirmed": {"$exists": True}},
    )


# ── Error Translation ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_duplicate_key_is_conflict():
    collection = _mock_collection()
    collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

    with pytest.raises(Conflict) as exc_info:
        await MeetingStore(collection).insert_one({"title": "Sync"})
    assert exc_info.value.details == {"index": CONFIRMED_INDEX_NAME}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [ExecutionTimeout("operation exceeded time limit"), ServerSelectionTimeoutError("no servers")],
)
async def test_driver_timeouts_are_deadline_exceeded(error):
    collection = _mock_collection()
    collection.find_one.side_effect = error

    with pytest.raises(DeadlineExceeded):
        await MeetingStore(collection).find_one({"_id": "m1"})


@pytest.mark.asyncio
async def test_other_driver_errors_are_backend():
    collection = _mock_collection()
    collection.delete_one.side_effect = OperationFailure("not authorized")

    with pytest.raises(BackendError) as exc_info:
        await MeetingStore(collection).delete_one({"_id": "m1"})
    assert "not authorized" not in exc_info.value.message


# ── Deadline ─────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_slow_call_aborted_at_deadline(store, collection):
    collection.delay = 5.0
    token = start_deadline(0.05)
    try:
        with pytest.raises(DeadlineExceeded) as exc_info:
            await store.find_one({"_id": "m1"})
    finally:
        reset_deadline(token)
    assert exc_info.value.details == {"operation": "find_one"}


@pytest.mark.asyncio
async def test_expired_deadline_skips_the_call(store, collection):
    token = start_deadline(0.0)
    await asyncio.sleep(0)
    try:
        with pytest.raises(DeadlineExceeded):
            await store.insert_one({"title": "Sync"})
    finally:
        reset_deadline(token)
    assert collection.calls == []


@pytest.mark.asyncio
async def test_no_deadline_outside_request(store, collection):
    collection.delay = 0.01
    assert await store.find_one({"_id": "m1"}) is None
