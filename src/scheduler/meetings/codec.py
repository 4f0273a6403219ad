"""Translation between the external Meeting JSON and the stored document.

Storage form::

    {
        "_id": "<uuid hex>",
        "title": "...",
        "participants": [{"name": ..., "email": ..., "rsvp": "yes|no|maybe"}],
        "starttime": "<client string>",
        "endtime": "<client string>",
        "timestamp": "<created_at>",
        "window": {"start": datetime, "end": datetime},   # only if both parse
        "confirmed": ["<lower-cased yes emails>"],        # only if non-empty
    }

``window`` and ``confirmed`` are derived on every write and never leave the
store; the planner queries them for time filtering and RSVP conflicts.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from src.scheduler.meetings.schemas import Meeting, Participant, Rsvp
from src.scheduler.meetings.times import parse_time, to_storage_time

# External field name -> storage key
FIELD_KEYS = {
    "id": "_id",
    "title": "title",
    "participants": "participants",
    "start_time": "starttime",
    "end_time": "endtime",
    "created_at": "timestamp",
}


def confirmed_emails(participants: Iterable[Participant]) -> list[str]:
    """Lower-cased, de-duplicated emails of participants who answered yes."""
    emails: list[str] = []
    for p in participants:
        key = p.email.lower()
        if p.rsvp == Rsvp.YES and key not in emails:
            emails.append(key)
    return emails


def derive_window(start_time: str, end_time: str) -> dict[str, Any] | None:
    """Storage window for two times, or None unless both parse."""
    start = parse_time(start_time)
    end = parse_time(end_time)
    if start is None or end is None:
        return None
    return {"start": to_storage_time(start), "end": to_storage_time(end)}


def encode_meeting(
    *,
    title: str,
    participants: list[Participant],
    start_time: str,
    end_time: str,
    created_at: str,
) -> dict[str, Any]:
    """Build the storage document (without ``_id``) for a meeting."""
    document: dict[str, Any] = {
        "title": title,
        "participants": [p.model_dump(mode="json") for p in participants],
        "starttime": start_time,
        "endtime": end_time,
        "timestamp": created_at,
    }
    window = derive_window(start_time, end_time)
    if window is not None:
        document["window"] = window
    confirmed = confirmed_emails(participants)
    if confirmed:
        document["confirmed"] = confirmed
    return document


def decode_meeting(document: dict[str, Any]) -> Meeting:
    """Convert a stored document to the external Meeting."""
    return Meeting(
        id=str(document["_id"]),
        title=document.get("title", ""),
        participants=[
            Participant.model_validate(p) for p in document.get("participants") or []
        ],
        start_time=document.get("starttime", ""),
        end_time=document.get("endtime", ""),
        created_at=document.get("timestamp", ""),
    )


def _encode_full(meeting: Meeting) -> dict[str, Any]:
    return encode_meeting(
        title=meeting.title,
        participants=meeting.participants,
        start_time=meeting.start_time,
        end_time=meeting.end_time,
        created_at=meeting.created_at,
    )


def encode_changes(current: Meeting, updated: Meeting) -> dict[str, Any]:
    """Update document turning ``current`` into ``updated``.

    Returns ``$set`` with every changed key (derived keys included) and
    ``$unset`` for derived keys that no longer apply. Empty when nothing
    changed.
    """
    before = _encode_full(current)
    after = _encode_full(updated)

    changed = {key: value for key, value in after.items() if before.get(key) != value}
    removed = {key: "" for key in before if key not in after}

    update: dict[str, Any] = {}
    if changed:
        update["$set"] = changed
    if removed:
        update["$unset"] = removed
    return update
