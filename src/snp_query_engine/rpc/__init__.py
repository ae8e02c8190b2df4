"""Asynchronous request/response boundary between a caller and the engine worker."""

from .client import EngineClient
from .messages import (
    CallbackInvocation,
    CallbackRef,
    LoopChannel,
    RemoteError,
    Request,
    Response,
    Shutdown,
)
from .worker import RpcWorker

__all__ = [
    "CallbackInvocation",
    "CallbackRef",
    "EngineClient",
    "LoopChannel",
    "RemoteError",
    "Request",
    "Response",
    "RpcWorker",
    "Shutdown",
]
