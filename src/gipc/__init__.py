"""General interprocess communication over named local channels.

Open a ``Listener`` in one process and a ``Connection`` in another, then
``send`` and ``receive`` typed messages; framing, encoding and the close
handshake are handled here. ``gipc.aio`` offers the same API for asyncio.
"""

from __future__ import annotations

from gipc.connection import AsyncConnection, AsyncListener, Connection, Listener, connect, listen
from gipc.errors import (
    ClosedError,
    DeserializeError,
    GipcError,
    IoError,
    JoinError,
    SerializeError,
)
from gipc.naming import resolve
from gipc.version import get_gipc_version

__version__ = get_gipc_version()

__all__ = [
    "AsyncConnection",
    "AsyncListener",
    "ClosedError",
    "Connection",
    "DeserializeError",
    "GipcError",
    "IoError",
    "JoinError",
    "Listener",
    "SerializeError",
    "__version__",
    "connect",
    "listen",
    "resolve",
]
