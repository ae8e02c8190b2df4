"""Worker side of the engine boundary.

The worker runs on its own event loop. Each request becomes a task, so
calls interleave at await points but a running query is never preempted.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from ..errors import RemoteCallError, error_kind
from .messages import (
    CallbackInvocation,
    CallbackRef,
    LoopChannel,
    RemoteError,
    Request,
    Response,
    Shutdown,
    unmarshal,
)

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[Any]]


class RpcWorker:
    """Serves requests from an inbox against a routing table."""

    def __init__(self, routes: Mapping[str, Handler], outbox: LoopChannel):
        self._routes = dict(routes)
        self._outbox = outbox

    def _stub(self, ref: CallbackRef) -> Callable[..., None]:
        outbox = self._outbox

        def invoke(*args: Any) -> None:
            outbox.send(CallbackInvocation(ref.token, args))

        return invoke

    async def serve(self, inbox: LoopChannel) -> None:
        """Handle requests until a Shutdown message arrives."""
        tasks: set[asyncio.Task] = set()

        while True:
            message = await inbox.receive()
            if isinstance(message, Shutdown):
                break
            if not isinstance(message, Request):
                logger.warning("Ignoring unexpected message: %r", message)
                continue

            task = asyncio.create_task(self.handle(message))
            tasks.add(task)
            task.add_done_callback(tasks.discard)

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Worker stopped")

    async def handle(self, request: Request) -> None:
        self._outbox.send(await self._execute(request))

    async def _execute(self, request: Request) -> Response:
        handler = self._routes.get(request.method)
        if handler is None:
            return Response(
                request.call_id,
                error=RemoteError(
                    RemoteCallError.__name__, f"Unknown method: {request.method}"
                ),
            )

        args = tuple(unmarshal(arg, self._stub) for arg in request.args)
        kwargs = {key: unmarshal(value, self._stub) for key, value in request.kwargs.items()}

        logger.debug("Handling %s (call %d)", request.method, request.call_id)
        try:
            value = await handler(*args, **kwargs)
        except Exception as e:
            kind = error_kind(e)
            if kind == RemoteCallError.__name__ and not isinstance(e, RemoteCallError):
                logger.exception("Unexpected error in %s", request.method)
                message = f"{type(e).__name__}: {e}"
            else:
                logger.info("%s failed: %s", request.method, e)
                message = str(e)
            return Response(request.call_id, error=RemoteError(kind, message))

        return Response(request.call_id, value=value)
