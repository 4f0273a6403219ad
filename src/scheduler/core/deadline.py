"""Request-scoped deadline propagation via Python contextvars.

The deadline is an absolute ``loop.time()`` value set by DeadlineMiddleware
at the start of each request. Store calls read it through
``remaining_time()`` / ``current_deadline()`` and bound themselves with it, so
a single budget covers every storage round trip made for one request.
"""

from __future__ import annotations

import asyncio
import contextvars

_deadline: contextvars.ContextVar[float | None] = contextvars.ContextVar(
    "request_deadline", default=None
)


def start_deadline(timeout_seconds: float) -> contextvars.Token[float | None]:
    """Set the deadline ``timeout_seconds`` from now. Returns a token for reset."""
    loop = asyncio.get_running_loop()
    return _deadline.set(loop.time() + timeout_seconds)


def reset_deadline(token: contextvars.Token[float | None]) -> None:
    _deadline.reset(token)


def current_deadline() -> float | None:
    """Absolute deadline of the current request, or None outside a request."""
    return _deadline.get()


def remaining_time() -> float | None:
    """Seconds left before the deadline (never negative), or None if unbounded."""
    deadline = _deadline.get()
    if deadline is None:
        return None
    return max(deadline - asyncio.get_running_loop().time(), 0.0)
