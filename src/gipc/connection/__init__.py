"""Connections and listeners.

``Connection`` and ``Listener`` are the blocking forms with a single owner;
``AsyncConnection`` and ``AsyncListener`` are the asyncio forms that may be
shared between tasks. Both speak the same wire protocol.
"""

from __future__ import annotations

from gipc.connection.aio import AsyncConnection, AsyncListener
from gipc.connection.state import ChannelState
from gipc.connection.sync import Connection, Listener, connect, listen

__all__ = [
    "AsyncConnection",
    "AsyncListener",
    "ChannelState",
    "Connection",
    "Listener",
    "connect",
    "listen",
]
