"""Meeting store -- deadline-bounded async access to the meetings collection.

MeetingStore wraps an async pymongo collection and exposes the four
operations the handlers need (insert, find, update, delete) plus index
management and a health ping. Every call runs under the request deadline
set by DeadlineMiddleware, and driver failures are translated into the
API error kinds (Conflict, DeadlineExceeded, BackendError) here, so nothing
above this layer ever sees a pymongo exception.
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any

import pymongo
import structlog
from pymongo.errors import DuplicateKeyError, PyMongoError

from src.scheduler.core.deadline import current_deadline, remaining_time
from src.scheduler.core.errors import BackendError, Conflict, DeadlineExceeded
from src.scheduler.core.monitoring import track_store_call

logger = structlog.get_logger(__name__)

CONFIRMED_INDEX_NAME = "confirmed_starttime_unique"


@dataclass(frozen=True)
class UpdateOutcome:
    """Matched and modified document counts of an update."""

    matched_count: int
    modified_count: int


class MeetingStore:
    """Async CRUD operations on the meetings collection.

    Identifiers are assigned here as random UUID hex strings so that the
    external id stays opaque and carries no driver semantics.

    Args:
        collection: An async pymongo collection (or anything with the same
            coroutine API).
    """

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    @contextlib.asynccontextmanager
    async def _bounded(self, operation: str) -> AsyncGenerator[None, None]:
        """Run one store call under the request deadline and map driver errors."""
        remaining = remaining_time()
        if remaining is not None and remaining <= 0:
            raise DeadlineExceeded(
                "Request deadline exceeded", details={"operation": operation}
            )
        driver_timeout = (
            pymongo.timeout(remaining) if remaining is not None else contextlib.nullcontext()
        )
        try:
            async with track_store_call(operation):
                async with asyncio.timeout_at(current_deadline()):
                    with driver_timeout:
                        yield
        except TimeoutError as exc:
            raise DeadlineExceeded(
                "Request deadline exceeded", details={"operation": operation}
            ) from exc
        except DuplicateKeyError as exc:
            raise Conflict(
                "A participant already has a confirmed meeting starting at this time",
                details={"index": CONFIRMED_INDEX_NAME},
            ) from exc
        except PyMongoError as exc:
            if exc.timeout:
                raise DeadlineExceeded(
                    "Request deadline exceeded", details={"operation": operation}
                ) from exc
            logger.error("store.operation_failed", operation=operation, exc_info=True)
            raise BackendError("Document store operation failed") from exc

    async def insert_one(self, document: dict[str, Any]) -> str:
        """Insert a meeting document and return its assigned identifier."""
        document = {"_id": uuid.uuid4().hex, **{k: v for k, v in document.items() if k != "_id"}}
        async with self._bounded("insert_one"):
            result = await self._collection.insert_one(document)
        return str(result.inserted_id)

    async def find_many(
        self,
        predicate: dict[str, Any],
        sort: list[tuple[str, int]] | None = None,
    ) -> list[dict[str, Any]]:
        """Return every document matching ``predicate`` in ``sort`` order."""
        async with self._bounded("find_many"):
            cursor = self._collection.find(predicate, sort=sort)
            return await cursor.to_list(None)

    async def find_one(self, predicate: dict[str, Any]) -> dict[str, Any] | None:
        async with self._bounded("find_one"):
            return await self._collection.find_one(predicate)

    async def update_one(
        self, filter: dict[str, Any], patch: dict[str, Any]
    ) -> UpdateOutcome:
        """Apply an update document (``$set`` / ``$unset``) to one meeting."""
        async with self._bounded("update_one"):
            result = await self._collection.update_one(filter, patch)
        return UpdateOutcome(
            matched_count=result.matched_count,
            modified_count=result.modified_count,
        )

    async def delete_one(self, filter: dict[str, Any]) -> int:
        """Delete one meeting. Returns the number of deleted documents (0 or 1)."""
        async with self._bounded("delete_one"):
            result = await self._collection.delete_one(filter)
        return result.deleted_count

    async def ensure_indexes(self) -> None:
        """Create the partial unique index backing the RSVP invariant.

        ``confirmed`` holds the lower-cased emails of participants who
        answered yes; it is absent when nobody did, so the partial filter
        keeps meetings without confirmations out of the index.
        """
        async with self._bounded("create_index"):
            await self._collection.create_index(
                [("confirmed", pymongo.ASCENDING), ("starttime", pymongo.ASCENDING)],
                name=CONFIRMED_INDEX_NAME,
                unique=True,
                partialFilterExpression={"confirmed": {"$exists": True}},
            )
        logger.info("store.indexes_ensured", index=CONFIRMED_INDEX_NAME)

    async def ping(self) -> None:
        async with self._bounded("ping"):
            await self._collection.database.command("ping")
