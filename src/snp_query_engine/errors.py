"""Failure kinds raised by the query engine.

Engine errors, plus ValueError and TypeError from argument checks, cross
the worker boundary by class name and are rebuilt on the caller side.
"""


class QueryEngineError(Exception):
    """Base class for query engine failures."""

    pass


class SourceUnavailable(QueryEngineError):
    """The dataset image could not be fetched (transport error or non-success status)."""

    pass


class StreamUnreadable(QueryEngineError):
    """The response body could not be consumed incrementally."""

    pass


class InvalidDatasetImage(QueryEngineError):
    """The downloaded buffer is not a usable SNP dataset."""

    pass


class StoreNotLoaded(QueryEngineError):
    """An operation was attempted before a dataset was loaded."""

    pass


class QueryExecutionFailed(QueryEngineError):
    """A query failed at the engine level."""

    pass


class RemoteCallError(QueryEngineError):
    """The worker failed a call for a reason outside the engine taxonomy."""

    pass


class BoundaryClosed(QueryEngineError):
    """The worker was shut down while the call was pending."""

    pass


_ERROR_KINDS: dict[str, type[Exception]] = {
    cls.__name__: cls
    for cls in (
        SourceUnavailable,
        StreamUnreadable,
        InvalidDatasetImage,
        StoreNotLoaded,
        QueryExecutionFailed,
        RemoteCallError,
        BoundaryClosed,
        ValueError,
        TypeError,
    )
}


def error_kind(exc: BaseException) -> str:
    """Return the wire name for an exception."""
    name = type(exc).__name__
    if _ERROR_KINDS.get(name) is type(exc):
        return name
    return RemoteCallError.__name__


def error_for_kind(kind: str, message: str) -> Exception:
    """Rebuild an engine error from its wire name.

    Unknown kinds come back as RemoteCallError with the kind kept in the message.
    """
    cls = _ERROR_KINDS.get(kind)
    if cls is None:
        return RemoteCallError(f"{kind}: {message}")
    return cls(message)
