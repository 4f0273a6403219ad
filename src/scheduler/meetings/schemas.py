"""Pydantic v2 schemas for the meeting API.

Defines the external JSON contract: the Meeting returned to clients, the
MeetingCreate body of POST /meetings and the partial MeetingUpdate body of
PUT /meeting/{id}. Unknown fields are rejected everywhere (extra="forbid").
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.scheduler.meetings.times import window_is_ordered

IMMUTABLE_FIELDS = ("id", "created_at")


# ── Enums ────────────────────────────────────────────────────────────────────


class Rsvp(str, Enum):
    """A participant's stated attendance intent."""

    YES = "yes"
    NO = "no"
    MAYBE = "maybe"


# ── Participant ──────────────────────────────────────────────────────────────


class Participant(BaseModel):
    """A named invitee. Email is stored as supplied and matched case-insensitively."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    rsvp: Rsvp = Rsvp.MAYBE

    @field_validator("name", "email")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


# ── Meeting ──────────────────────────────────────────────────────────────────


class Meeting(BaseModel):
    """A stored meeting as rendered to clients."""

    id: str
    title: str
    participants: list[Participant]
    start_time: str
    end_time: str
    created_at: str


class MeetingCreate(BaseModel):
    """Body of POST /meetings.

    ``id`` and ``created_at`` are server-assigned; when a client sends them
    they are accepted and ignored.
    """

    model_config = ConfigDict(extra="forbid")

    id: Any = Field(default=None, exclude=True)
    created_at: Any = Field(default=None, exclude=True)
    title: str = Field(min_length=1)
    participants: list[Participant] = Field(min_length=1)
    start_time: str = Field(min_length=1)
    end_time: str = Field(min_length=1)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _window_ordered(self) -> MeetingCreate:
        if not window_is_ordered(self.start_time, self.end_time):
            raise ValueError("start_time must not be after end_time")
        return self


class MeetingUpdate(BaseModel):
    """Body of PUT /meeting/{id}: any subset of the mutable fields.

    Window ordering is checked by the handler against the merged meeting,
    since a patch may carry only one of the two times.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1)
    participants: list[Participant] | None = Field(default=None, min_length=1)
    start_time: str | None = Field(default=None, min_length=1)
    end_time: str | None = Field(default=None, min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _reject_immutable(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for name in IMMUTABLE_FIELDS:
                if name in data:
                    raise ValueError(f"{name} is immutable")
        return data

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _reject_nulls(self) -> MeetingUpdate:
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} must not be null")
        return self

    def changes(self) -> dict[str, Any]:
        """Fields present in the patch, nested models left as models."""
        return {name: getattr(self, name) for name in self.model_fields_set}
