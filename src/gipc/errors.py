"""Error taxonomy shared by the blocking and asyncio connection APIs."""

from __future__ import annotations


class GipcError(Exception):
    """Base for every error raised by gipc."""


class IoError(GipcError, OSError):
    """Raised when the underlying transport fails.

    Covers connect, bind, accept, read, write and flush failures, and a
    stream ending before a complete frame was read. The original exception
    is kept as ``__cause__``.
    """


class SerializeError(GipcError, ValueError):
    """Raised when a value cannot be encoded for the wire."""


class DeserializeError(GipcError, ValueError):
    """Raised when bytes on the wire do not decode into a valid message."""


class ClosedError(GipcError):
    """Raised when an operation hits a closed connection or listener.

    Attributes:
        by_operation: ``True`` when the instance was closed as a direct result
            of this call (the peer sent its closing signal while receiving),
            ``False`` when it was already closed before the call.
    """

    def __init__(self, by_operation: bool) -> None:
        super().__init__("was closed by operation" if by_operation else "already closed")
        self.by_operation = by_operation

    def __reduce__(self) -> tuple[type[ClosedError], tuple[bool]]:
        return type(self), (self.by_operation,)


class JoinError(GipcError):
    """Raised when a spawned handler task cannot be awaited to completion."""


def io_error(action: str, exc: BaseException) -> IoError:
    """Build the ``IoError`` reported for a failed transport *action*."""
    if isinstance(exc, EOFError):
        return IoError(f"{action} failed: stream ended before a complete frame")
    return IoError(f"{action} failed: {exc}")


__all__ = [
    "ClosedError",
    "DeserializeError",
    "GipcError",
    "IoError",
    "JoinError",
    "SerializeError",
    "io_error",
]
