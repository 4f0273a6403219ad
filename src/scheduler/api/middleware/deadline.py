"""Per-request deadline and disconnect middleware.

Stamps every HTTP request with an absolute deadline
(REQUEST_TIMEOUT_SECONDS from arrival). MeetingStore reads the deadline from
the context and aborts in-flight calls once it fires.

The downstream app runs in its own task while this middleware listens on the
server's ``receive`` channel. When the client disconnects, the task is
cancelled, so in-flight store calls stop instead of running to the deadline.
The request body is read up front and replayed to the app; once it is
exhausted the app sees ``http.disconnect`` only after the client has gone.
"""

from __future__ import annotations

import asyncio

import structlog
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.scheduler.core.deadline import reset_deadline, start_deadline

logger = structlog.get_logger(__name__)


async def _read_request(receive: Receive) -> list[Message]:
    """Collect request messages up to the end of the body (or a disconnect)."""
    messages: list[Message] = []
    while True:
        message = await receive()
        messages.append(message)
        if message["type"] != "http.request" or not message.get("more_body", False):
            return messages


async def _wait_for_disconnect(receive: Receive) -> None:
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return


class DeadlineMiddleware:
    """Attach a request deadline and cancel the handler when the client leaves.

    Must be the outermost middleware so that it owns the server's receive
    channel.
    """

    def __init__(self, app: ASGIApp, timeout_seconds: float = 10.0) -> None:
        self.app = app
        self._timeout = timeout_seconds

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        token = start_deadline(self._timeout)
        try:
            await self._run(scope, receive, send)
        finally:
            reset_deadline(token)

    async def _run(self, scope: Scope, receive: Receive, send: Send) -> None:
        messages = await _read_request(receive)
        if messages[-1]["type"] == "http.disconnect":
            logger.info("request_cancelled", reason="client_disconnected", path=scope["path"])
            return

        disconnected = asyncio.Event()
        response_sent = asyncio.Event()

        async def replay() -> Message:
            if messages:
                return messages.pop(0)
            await disconnected.wait()
            return {"type": "http.disconnect"}

        async def send_through(message: Message) -> None:
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                response_sent.set()
            await send(message)

        # Tasks copy the current context, deadline included
        handler = asyncio.create_task(self.app(scope, replay, send_through))
        watcher = asyncio.create_task(_wait_for_disconnect(receive))
        try:
            await asyncio.wait({handler, watcher}, return_when=asyncio.FIRST_COMPLETED)
            # Servers also report a disconnect once the response is complete
            if not handler.done() and not response_sent.is_set():
                handler.cancel()
                await asyncio.wait({handler})
                logger.info(
                    "request_cancelled",
                    reason="client_disconnected",
                    method=scope["method"],
                    path=scope["path"],
                )
                return
            disconnected.set()
            await handler
        finally:
            watcher.cancel()
            if not handler.done():
                handler.cancel()
