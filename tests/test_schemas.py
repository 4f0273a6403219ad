"""Unit tests for meeting request/response schemas."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.scheduler.meetings.schemas import MeetingCreate, MeetingUpdate, Participant, Rsvp


def _create_body(**overrides) -> dict:
    body = {
        "title": "Sync",
        "participants": [{"name": "A", "email": "a@x", "rsvp": "yes"}],
        "start_time": "2024-01-01T09:00Z",
        "end_time": "2024-01-01T10:00Z",
    }
    body.update(overrides)
    return body


class TestParticipant:
    def test_rsvp_defaults_to_maybe(self):
        assert Participant(name="A", email="a@x").rsvp == Rsvp.MAYBE

    @pytest.mark.parametrize(
        "data",
        [
            {"email": "a@x"},
            {"name": "A"},
            {"name": "", "email": "a@x"},
            {"name": "A", "email": "   "},
            {"name": "A", "email": "a@x", "rsvp": "perhaps"},
            {"name": "A", "email": "a@x", "phone": "555"},
        ],
    )
    def test_invalid_participant(self, data):
        with pytest.raises(ValidationError):
            Participant.model_validate(data)


class TestMeetingCreate:
    def test_valid(self):
        meeting = MeetingCreate.model_validate(_create_body())
        assert meeting.participants[0].rsvp == Rsvp.YES

    def test_client_id_and_created_at_ignored(self):
        meeting = MeetingCreate.model_validate(
            _create_body(id="client-chosen", created_at="1999-01-01")
        )
        assert "id" not in meeting.model_dump()
        assert "created_at" not in meeting.model_dump()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": ""},
            {"title": "   "},
            {"participants": []},
            {"start_time": None},
            {"end_time": ""},
            {"start_time": "2024-01-01T11:00Z"},
            {"location": "Room 1"},
        ],
    )
    def test_invalid(self, overrides):
        with pytest.raises(ValidationError):
            MeetingCreate.model_validate(_create_body(**overrides))

    def test_missing_times(self):
        body = _create_body()
        del body["end_time"]
        with pytest.raises(ValidationError):
            MeetingCreate.model_validate(body)

    def test_unparseable_times_accepted_verbatim(self):
        meeting = MeetingCreate.model_validate(_create_body(start_time="5: 00", end_time="2: 00"))
        assert meeting.start_time == "5: 00"


class TestMeetingUpdate:
    def test_partial(self):
        patch = MeetingUpdate.model_validate({"title": "Standup"})
        assert patch.changes() == {"title": "Standup"}

    def test_empty_patch(self):
        assert MeetingUpdate.model_validate({}).changes() == {}

    @pytest.mark.parametrize("field", ["id", "created_at"])
    def test_immutable_fields_rejected(self, field):
        with pytest.raises(ValidationError, match="immutable"):
            MeetingUpdate.model_validate({field: "x"})

    @pytest.mark.parametrize(
        "data",
        [
            {"title": None},
            {"title": ""},
            {"participants": []},
            {"end_time": ""},
            {"color": "blue"},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ValidationError):
            MeetingUpdate.model_validate(data)
