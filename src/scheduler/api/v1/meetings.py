"""REST endpoints for meeting scheduling.

    POST   /meetings           create a meeting (201)
    GET    /meetings           list meetings, filtered by start/end/participant
    GET    /meeting/{id}       fetch one meeting
    PUT    /meeting/{id}       partial update of the mutable fields
    DELETE /meeting/{id}       delete a meeting (204)

Each handler validates first, then runs the optional RSVP conflict query,
then mutates, then responds. Failures are raised as SchedulerError
subclasses and rendered by the error reporter in src/scheduler/api/errors.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

import structlog

from src.scheduler.api.deps import get_meeting_store, require_json
from src.scheduler.core.errors import Conflict, NotFound, ValidationFailed
from src.scheduler.meetings.codec import decode_meeting, encode_changes, encode_meeting
from src.scheduler.meetings.planner import (
    MEETING_SORT,
    MeetingQuery,
    plan_conflict_filter,
    plan_meeting_filter,
)
from src.scheduler.meetings.schemas import (
    Meeting,
    MeetingCreate,
    MeetingUpdate,
    Participant,
    Rsvp,
)
from src.scheduler.meetings.store import MeetingStore
from src.scheduler.meetings.times import utc_now_iso, window_is_ordered

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["meetings"])


# ── Helpers ──────────────────────────────────────────────────────────────────


async def _ensure_no_rsvp_conflict(
    store: MeetingStore,
    *,
    participants: list[Participant],
    start_time: str,
    end_time: str,
    exclude_id: str | None = None,
) -> None:
    """Raise Conflict if a yes-participant is already confirmed elsewhere.

    The check and the following write are not atomic; the partial unique
    index on (confirmed, starttime) catches identical starts that race past
    it. Handlers call this again when the index rejects a write, so the 409
    still names the meeting that got there first.
    """
    predicate = plan_conflict_filter(
        participants=participants,
        start_time=start_time,
        end_time=end_time,
        exclude_id=exclude_id,
    )
    if predicate is None:
        return

    clashes = await store.find_many(predicate, sort=MEETING_SORT)
    if not clashes:
        return

    taken: set[str] = set()
    for document in clashes:
        taken.update(document.get("confirmed") or [])
    # offending emails as the client spelled them, first occurrence only
    emails = list(
        dict.fromkeys(
            p.email
            for p in participants
            if p.rsvp == Rsvp.YES and p.email.lower() in taken
        )
    )

    raise Conflict(
        "Participants already confirmed for an overlapping meeting",
        details={
            "meeting_ids": [str(d["_id"]) for d in clashes],
            "emails": emails,
        },
    )


async def _load_meeting(store: MeetingStore, meeting_id: str) -> Meeting:
    document = await store.find_one({"_id": meeting_id})
    if document is None:
        raise NotFound(f"Meeting not found: {meeting_id}", details={"id": meeting_id})
    return decode_meeting(document)


# ── Collection Endpoints ─────────────────────────────────────────────────────


@router.post(
    "/meetings",
    response_model=Meeting,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_json)],
)
async def create_meeting(
    body: MeetingCreate,
    response: Response,
    store: MeetingStore = Depends(get_meeting_store),
) -> Meeting:
    """Create a meeting.

    Any client-supplied ``id`` or ``created_at`` is ignored. Responds 409
    when a participant with RSVP yes already has an overlapping confirmed
    meeting.
    """
    await _ensure_no_rsvp_conflict(
        store,
        participants=body.participants,
        start_time=body.start_time,
        end_time=body.end_time,
    )

    created_at = utc_now_iso()
    document = encode_meeting(
        title=body.title,
        participants=body.participants,
        start_time=body.start_time,
        end_time=body.end_time,
        created_at=created_at,
    )
    try:
        meeting_id = await store.insert_one(document)
    except Conflict:
        # Lost a race on the unique index; report the meeting that won it
        await _ensure_no_rsvp_conflict(
            store,
            participants=body.participants,
            start_time=body.start_time,
            end_time=body.end_time,
        )
        raise

    logger.info("meeting.created", meeting_id=meeting_id)
    response.headers["Location"] = f"/meeting/{meeting_id}"
    return Meeting(
        id=meeting_id,
        title=body.title,
        participants=body.participants,
        start_time=body.start_time,
        end_time=body.end_time,
        created_at=created_at,
    )


@router.get("/meetings", response_model=list[Meeting])
async def list_meetings(
    start: str | None = Query(default=None, description="Window start (ISO-8601)"),
    end: str | None = Query(default=None, description="Window end (ISO-8601)"),
    participant: str | None = Query(
        default=None, description="Participant email, case-insensitive"
    ),
    store: MeetingStore = Depends(get_meeting_store),
) -> list[Meeting]:
    """List meetings overlapping ``[start, end]`` and/or including ``participant``.

    Sorted by start_time, then id.
    """
    query = MeetingQuery.from_params(start=start, end=end, participant=participant)
    documents = await store.find_many(plan_meeting_filter(query), sort=MEETING_SORT)
    return [decode_meeting(d) for d in documents]


# ── Item Endpoints ───────────────────────────────────────────────────────────


@router.get("/meeting/{meeting_id}", response_model=Meeting)
async def get_meeting(
    meeting_id: str,
    store: MeetingStore = Depends(get_meeting_store),
) -> Meeting:
    """Get a meeting by ID."""
    return await _load_meeting(store, meeting_id)


@router.put(
    "/meeting/{meeting_id}",
    response_model=Meeting,
    dependencies=[Depends(require_json)],
)
async def update_meeting(
    meeting_id: str,
    body: MeetingUpdate,
    store: MeetingStore = Depends(get_meeting_store),
) -> Meeting:
    """Apply a partial update to a meeting.

    The patch is merged over the stored meeting and the result must still
    satisfy every meeting invariant. Only changed fields are written.
    """
    current = await _load_meeting(store, meeting_id)
    updated = current.model_copy(update=body.changes())

    if not window_is_ordered(updated.start_time, updated.end_time):
        raise ValidationFailed(
            "start_time must not be after end_time",
            details={"start_time": updated.start_time, "end_time": updated.end_time},
        )

    patch = encode_changes(current, updated)
    if not patch:
        return current

    await _ensure_no_rsvp_conflict(
        store,
        participants=updated.participants,
        start_time=updated.start_time,
        end_time=updated.end_time,
        exclude_id=meeting_id,
    )

    try:
        outcome = await store.update_one({"_id": meeting_id}, patch)
    except Conflict:
        await _ensure_no_rsvp_conflict(
            store,
            participants=updated.participants,
            start_time=updated.start_time,
            end_time=updated.end_time,
            exclude_id=meeting_id,
        )
        raise
    if outcome.matched_count == 0:
        raise NotFound(f"Meeting not found: {meeting_id}", details={"id": meeting_id})

    logger.info(
        "meeting.updated",
        meeting_id=meeting_id,
        fields=sorted(body.model_fields_set),
    )
    return updated


@router.delete(
    "/meeting/{meeting_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_meeting(
    meeting_id: str,
    store: MeetingStore = Depends(get_meeting_store),
) -> Response:
    """Delete a meeting. A second delete of the same ID is a 404."""
    deleted = await store.delete_one({"_id": meeting_id})
    if deleted == 0:
        raise NotFound(f"Meeting not found: {meeting_id}", details={"id": meeting_id})
    logger.info("meeting.deleted", meeting_id=meeting_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
