"""Messages exchanged between the engine client and its worker."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallbackRef:
    """Stands in for a caller-side callable inside a request."""

    token: int


@dataclass(frozen=True)
class Request:
    call_id: int
    method: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CallbackInvocation:
    token: int
    args: tuple[Any, ...] = ()


@dataclass(frozen=True)
class RemoteError:
    kind: str
    message: str


@dataclass(frozen=True)
class Response:
    call_id: int
    value: Any = None
    error: RemoteError | None = None


@dataclass(frozen=True)
class Shutdown:
    """Tells the receiving side to stop reading its inbox."""


def marshal(value: Any, register: Callable[[Callable[..., Any]], CallbackRef]) -> Any:
    """Prepare one argument for the worker.

    Callables become CallbackRefs; lists and dicts are copied so later
    caller-side mutation can't leak into a running call.
    """
    if callable(value) and not isinstance(value, type):
        return register(value)
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return dict(value)
    return value


def unmarshal(value: Any, make_stub: Callable[[CallbackRef], Callable[..., None]]) -> Any:
    if isinstance(value, CallbackRef):
        return make_stub(value)
    return value


class LoopChannel:
    """Inbox owned by one event loop that other threads can post into.

    Must be created on the owning loop. call_soon_threadsafe keeps messages
    in the order they were sent.
    """

    def __init__(self):
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[Any] = asyncio.Queue()

    def send(self, message: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, message)
        except RuntimeError:
            logger.warning("Receiving event loop is closed; dropped %s", type(message).__name__)

    async def receive(self) -> Any:
        return await self._queue.get()
