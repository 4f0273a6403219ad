"""Query planner -- maps external filter parameters to store predicates.

Everything here is pure: equal inputs give structurally equal predicate
documents, and nothing touches the store.

List filter (GET /meetings):
    start / end    -> overlap of ``[start, end]`` with the stored window,
                      ``window.start <= end AND window.end >= start``;
                      an absent bound drops its clause.
    participant    -> case-insensitive equality on ``participants.email``.

Conflict filter (create / update):
    another meeting where one of the candidate's yes-emails also answered
    yes AND (the windows overlap OR the start strings are identical).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import pymongo

from src.scheduler.core.errors import ValidationFailed
from src.scheduler.meetings.codec import FIELD_KEYS, confirmed_emails, derive_window
from src.scheduler.meetings.schemas import Participant
from src.scheduler.meetings.times import parse_time, to_storage_time

MEETING_SORT: list[tuple[str, int]] = [
    (FIELD_KEYS["start_time"], pymongo.ASCENDING),
    (FIELD_KEYS["id"], pymongo.ASCENDING),
]


@dataclass(frozen=True)
class MeetingQuery:
    """Validated filter parameters of GET /meetings."""

    start: datetime | None = None
    end: datetime | None = None
    participant: str | None = None

    @classmethod
    def from_params(
        cls,
        start: str | None = None,
        end: str | None = None,
        participant: str | None = None,
    ) -> MeetingQuery:
        """Parse raw query parameters, raising ValidationFailed on bad input."""
        errors: dict[str, str] = {}

        start_at = None
        if start is not None:
            start_at = parse_time(start)
            if start_at is None:
                errors["start"] = "must be an ISO-8601 time"

        end_at = None
        if end is not None:
            end_at = parse_time(end)
            if end_at is None:
                errors["end"] = "must be an ISO-8601 time"

        if participant is not None and not participant.strip():
            errors["participant"] = "must not be empty"

        if start_at is not None and end_at is not None and start_at > end_at:
            errors["start"] = "must not be after end"

        if errors:
            raise ValidationFailed("Invalid query parameters", details=errors)
        return cls(start=start_at, end=end_at, participant=participant)


def email_matcher(email: str) -> dict[str, str]:
    """Anchored case-insensitive regex matching exactly ``email``."""
    return {"$regex": f"^{re.escape(email)}$", "$options": "i"}


def plan_meeting_filter(query: MeetingQuery) -> dict[str, Any]:
    """Predicate for GET /meetings. Empty query -> match everything."""
    predicate: dict[str, Any] = {}
    if query.end is not None:
        predicate["window.start"] = {"$lte": to_storage_time(query.end)}
    if query.start is not None:
        predicate["window.end"] = {"$gte": to_storage_time(query.start)}
    if query.participant is not None:
        predicate["participants.email"] = email_matcher(query.participant)
    return predicate


def plan_conflict_filter(
    *,
    participants: list[Participant],
    start_time: str,
    end_time: str,
    exclude_id: str | None = None,
) -> dict[str, Any] | None:
    """Predicate finding meetings that clash with a candidate's yes RSVPs.

    Returns None when nobody in the candidate answered yes, in which case
    there is nothing to check.
    """
    emails = confirmed_emails(participants)
    if not emails:
        return None

    alternatives: list[dict[str, Any]] = []
    window = derive_window(start_time, end_time)
    if window is not None:
        alternatives.append(
            {
                "window.start": {"$lte": window["end"]},
                "window.end": {"$gte": window["start"]},
            }
        )
    alternatives.append({FIELD_KEYS["start_time"]: start_time})

    predicate: dict[str, Any] = {
        "confirmed": {"$in": emails},
        "$or": alternatives,
    }
    if exclude_id is not None:
        predicate[FIELD_KEYS["id"]] = {"$ne": exclude_id}
    return predicate
