"""Asyncio entry points: ``await gipc.aio.connect(...)`` and friends."""

from __future__ import annotations

from gipc.connection.aio import AsyncConnection, AsyncListener, connect, join, listen

__all__ = ["AsyncConnection", "AsyncListener", "connect", "join", "listen"]
