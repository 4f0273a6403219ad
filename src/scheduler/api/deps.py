"""FastAPI dependencies for the meeting routes."""

from __future__ import annotations

from fastapi import Request

from src.scheduler.core.errors import BackendError, ValidationFailed
from src.scheduler.meetings.store import MeetingStore

JSON_MEDIA_TYPE = "application/json"


def get_meeting_store(request: Request) -> MeetingStore:
    """Retrieve the process-wide MeetingStore from app.state."""
    store = getattr(request.app.state, "meeting_store", None)
    if store is None:
        raise BackendError("Meeting store not initialized")
    return store


async def require_json(request: Request) -> None:
    """Reject request bodies that are not declared as JSON."""
    content_type = request.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type != JSON_MEDIA_TYPE and not media_type.endswith("+json"):
        raise ValidationFailed(
            f"Content-Type must be {JSON_MEDIA_TYPE}",
            details={"content_type": content_type or None},
        )
