"""Open/closed lifecycle shared by connections and listeners."""

from __future__ import annotations

from enum import StrEnum

from gipc.errors import ClosedError


class ChannelState(StrEnum):
    OPEN = "open"
    CLOSED = "closed"


class Lifecycle:
    """One-way ``OPEN -> CLOSED`` state for a connection or listener.

    The blocking and asyncio classes both drive their state through this
    object so the two execution models reject operations identically.
    """

    __slots__ = ("_state",)

    def __init__(self) -> None:
        self._state = ChannelState.OPEN

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is ChannelState.CLOSED

    def ensure_open(self) -> None:
        """Raise ``ClosedError(False)`` if already closed."""
        if self.closed:
            raise ClosedError(False)

    def mark_closed(self) -> None:
        self._state = ChannelState.CLOSED

    def close_once(self) -> None:
        """Transition to closed, rejecting a second close with ``ClosedError(False)``."""
        self.ensure_open()
        self.mark_closed()


__all__ = ["ChannelState", "Lifecycle"]
