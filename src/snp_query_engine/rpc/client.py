"""Caller side of the engine boundary.

EngineClient starts a worker thread with its own event loop, builds the
engine API inside it and proxies calls to it. Progress callbacks passed as
arguments are swapped for tokens; the worker sends token invocations back
and the client runs the original callable on the caller's loop, in order,
before the call's result is delivered.
"""

import asyncio
import itertools
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import httpx

from ..api import SNPMatcherApi
from ..config import EngineConfig
from ..errors import BoundaryClosed, error_for_kind
from ..matcher import MatchProgressCallback
from ..models import DatabaseStats, FilterCriteria, MatchedSNP, SearchResult, UserGenotype
from ..streaming import LoadProgressCallback
from .messages import (
    CallbackInvocation,
    CallbackRef,
    LoopChannel,
    Request,
    Response,
    Shutdown,
    marshal,
)
from .worker import RpcWorker

logger = logging.getLogger(__name__)

ApiFactory = Callable[[], SNPMatcherApi]


def _settle(future: asyncio.Future, value: Any = None, error: BaseException | None = None):
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(value)


class EngineClient:
    """Async proxy for a query engine running in a dedicated worker thread.

    Example:
        async with EngineClient() as engine:
            await engine.load_database(url, on_progress=print)
            matches = await engine.match_snps(genotypes)
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        api_factory: ApiFactory | None = None,
    ):
        self._api_factory = api_factory or (lambda: SNPMatcherApi(config, transport=transport))
        self._thread: threading.Thread | None = None
        self._worker_inbox: LoopChannel | None = None
        self._inbox: LoopChannel | None = None
        self._dispatcher: asyncio.Task | None = None
        self._pending: dict[int, asyncio.Future] = {}
        self._callbacks: dict[int, Callable[..., Any]] = {}
        self._call_tokens: dict[int, list[int]] = {}
        self._call_ids = itertools.count(1)
        self._tokens = itertools.count(1)

    @property
    def is_running(self) -> bool:
        return self._worker_inbox is not None

    async def start(self) -> None:
        if self._thread is not None:
            return

        loop = asyncio.get_running_loop()
        self._inbox = LoopChannel()
        ready: asyncio.Future[LoopChannel] = loop.create_future()

        self._thread = threading.Thread(
            target=lambda: asyncio.run(self._worker_main(loop, ready)),
            name="snp-query-engine-worker",
            daemon=True,
        )
        self._thread.start()
        self._dispatcher = asyncio.create_task(self._dispatch())

        try:
            self._worker_inbox = await ready
        except BaseException:
            await self._stop_dispatcher()
            await asyncio.to_thread(self._thread.join)
            self._thread = None
            raise
        logger.debug("Engine worker started")

    async def _worker_main(self, host_loop: asyncio.AbstractEventLoop, ready: asyncio.Future):
        inbox = LoopChannel()
        try:
            api = self._api_factory()
        except Exception as e:
            host_loop.call_soon_threadsafe(_settle, ready, None, e)
            return

        worker = RpcWorker(api.routes(), self._inbox)
        host_loop.call_soon_threadsafe(_settle, ready, inbox)
        try:
            await worker.serve(inbox)
        finally:
            api.close()

    async def close(self) -> None:
        """Stop the worker; calls still pending fail with BoundaryClosed."""
        if self._thread is None:
            return

        if self._worker_inbox is not None:
            self._worker_inbox.send(Shutdown())
            self._worker_inbox = None
        await asyncio.to_thread(self._thread.join)
        self._thread = None

        # Everything the worker sent is queued ahead of this sentinel.
        await self._stop_dispatcher()

        for call_id, future in list(self._pending.items()):
            _settle(future, error=BoundaryClosed(f"Worker closed while call {call_id} was pending"))
        self._pending.clear()
        self._callbacks.clear()
        self._call_tokens.clear()
        logger.debug("Engine worker stopped")

    async def _stop_dispatcher(self) -> None:
        if self._dispatcher is None:
            return
        self._inbox.send(Shutdown())
        await self._dispatcher
        self._dispatcher = None

    async def __aenter__(self) -> "EngineClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke method on the worker and wait for its result.

        Raises:
            BoundaryClosed: If the client is not running.
        """
        if self._worker_inbox is None:
            raise BoundaryClosed("Engine client is not running")

        call_id = next(self._call_ids)
        tokens: list[int] = []

        def register(callback: Callable[..., Any]) -> CallbackRef:
            token = next(self._tokens)
            self._callbacks[token] = callback
            tokens.append(token)
            return CallbackRef(token)

        request = Request(
            call_id=call_id,
            method=method,
            args=tuple(marshal(arg, register) for arg in args),
            kwargs={key: marshal(value, register) for key, value in kwargs.items()},
        )

        future = asyncio.get_running_loop().create_future()
        self._pending[call_id] = future
        self._call_tokens[call_id] = tokens
        self._worker_inbox.send(request)
        return await future

    async def _dispatch(self) -> None:
        while True:
            message = await self._inbox.receive()
            if isinstance(message, Shutdown):
                return
            if isinstance(message, CallbackInvocation):
                self._invoke_callback(message)
            elif isinstance(message, Response):
                self._complete(message)
            else:
                logger.warning("Ignoring unexpected message: %r", message)

    def _invoke_callback(self, message: CallbackInvocation) -> None:
        callback = self._callbacks.get(message.token)
        if callback is None:
            logger.warning("No callback registered for token %d", message.token)
            return
        try:
            callback(*message.args)
        except Exception:
            logger.exception("Callback for token %d raised", message.token)

    def _complete(self, response: Response) -> None:
        for token in self._call_tokens.pop(response.call_id, ()):
            self._callbacks.pop(token, None)

        future = self._pending.pop(response.call_id, None)
        if future is None:
            logger.warning("Response for unknown call %d", response.call_id)
            return

        if response.error is not None:
            _settle(future, error=error_for_kind(response.error.kind, response.error.message))
        else:
            _settle(future, response.value)

    async def load_database(
        self, url: str, on_progress: LoadProgressCallback | None = None
    ) -> None:
        await self.call("load_database", url, on_progress)

    async def get_database_stats(self) -> DatabaseStats:
        return await self.call("get_database_stats")

    async def match_snps(
        self,
        genotypes: Sequence[UserGenotype],
        on_progress: MatchProgressCallback | None = None,
    ) -> list[MatchedSNP]:
        return await self.call("match_snps", list(genotypes), on_progress)

    async def search_snps(
        self, criteria: FilterCriteria | Mapping[str, Any] | None = None
    ) -> SearchResult:
        return await self.call("search_snps", criteria)
