"""Error kinds raised by the meeting API.

Every failure that reaches a client is one of the SchedulerError subclasses
below. Each carries the HTTP status it maps to, a stable ``kind`` code used
in the JSON error body, and the log level the error reporter uses for it.
"""

from __future__ import annotations

from typing import Any


class SchedulerError(Exception):
    """Base class for all errors reported to API clients."""

    kind: str = "backend"
    status_code: int = 500
    log_level: str = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailed(SchedulerError):
    """Malformed JSON, missing or empty field, unknown field, bad enum, start > end."""

    kind = "validation"
    status_code = 400
    log_level = "info"


class NotFound(SchedulerError):
    """No meeting matches the requested identifier."""

    kind = "not_found"
    status_code = 404
    log_level = "info"


class Conflict(SchedulerError):
    """RSVP overlap or unique-index violation."""

    kind = "conflict"
    status_code = 409
    log_level = "info"


class DeadlineExceeded(SchedulerError):
    """The request deadline fired before the store answered."""

    kind = "timeout"
    status_code = 504
    log_level = "error"


class BackendError(SchedulerError):
    """Any other storage failure."""

    kind = "backend"
    status_code = 500
    log_level = "error"
