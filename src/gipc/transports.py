"""Transport capabilities and their Unix-domain socket implementations.

Connections and listeners only talk to transports through the protocols
declared here, one blocking and one asyncio flavour of each:

* stream transports read exact byte counts, write, flush and close
* listener transports accept new stream transports and close

Stream ``close()`` is best-effort and must not raise. Failures elsewhere are
reported as ``OSError`` (or ``EOFError`` when a stream ends early).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import socket
import sys
from typing import Protocol, Self

from gipc.naming import is_abstract_address

logger = logging.getLogger(__name__)

_RECV_CHUNK = 64 * 1024

# ---------------------------------------------------------------------------
# Capability sets
# ---------------------------------------------------------------------------


class StreamTransport(Protocol):
    def read_exact(self, size: int) -> bytes: ...

    def write(self, data: bytes) -> None: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


class ListenerTransport(Protocol):
    def accept(self) -> StreamTransport: ...

    def close(self) -> None: ...


class AsyncStreamTransport(Protocol):
    async def read_exact(self, size: int) -> bytes: ...

    async def write(self, data: bytes) -> None: ...

    async def flush(self) -> None: ...

    async def close(self) -> None: ...


class AsyncListenerTransport(Protocol):
    async def accept(self) -> AsyncStreamTransport: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Shared socket helpers
# ---------------------------------------------------------------------------


def _require_unix_sockets() -> None:
    if not hasattr(socket, "AF_UNIX"):
        msg = "Unix sockets are not supported on this platform"
        raise NotImplementedError(msg)


def _bind_unix_socket(address: str, *, private: bool = True) -> socket.socket:
    """Create a listening Unix socket at *address*.

    Any stale socket file is removed before binding. A *private* socket file
    is restricted to its owner.
    """
    _require_unix_sockets()
    if not is_abstract_address(address):
        with contextlib.suppress(FileNotFoundError):
            os.unlink(address)
        parent = os.path.dirname(address)
        if parent:
            os.makedirs(parent, exist_ok=True)

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.bind(address)
        sock.listen()
        if private and not is_abstract_address(address) and sys.platform != "win32":
            os.chmod(address, 0o600)
    except OSError:
        sock.close()
        raise
    logger.info("Unix socket listener bound at %r", address)
    return sock


def _release_unix_socket(sock: socket.socket, address: str) -> None:
    sock.close()
    if not is_abstract_address(address):
        with contextlib.suppress(FileNotFoundError):
            os.unlink(address)
    logger.info("Unix socket listener at %r stopped", address)


# ---------------------------------------------------------------------------
# Blocking transports
# ---------------------------------------------------------------------------


class SocketStream:
    """Blocking stream transport over a connected Unix socket."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    @classmethod
    def connect(cls, address: str) -> Self:
        """Open a connection to the Unix socket at *address*."""
        _require_unix_sockets()
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(address)
        except OSError:
            sock.close()
            raise
        logger.debug("Connected to Unix socket at %r", address)
        return cls(sock)

    def read_exact(self, size: int) -> bytes:
        buffer = bytearray()
        while len(buffer) < size:
            chunk = self._sock.recv(min(size - len(buffer), _RECV_CHUNK))
            if not chunk:
                msg = f"expected {size} bytes, stream ended after {len(buffer)}"
                raise EOFError(msg)
            buffer += chunk
        return bytes(buffer)

    def write(self, data: bytes) -> None:
        self._sock.sendall(data)

    def flush(self) -> None:
        """Sockets are unbuffered; nothing to flush."""

    def close(self) -> None:
        with contextlib.suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)
        self._sock.close()


class SocketListener:
    """Blocking listener transport over a bound Unix socket."""

    def __init__(self, sock: socket.socket, address: str) -> None:
        self._sock = sock
        self._address = address

    @classmethod
    def bind(cls, address: str, *, private: bool = True) -> Self:
        return cls(_bind_unix_socket(address, private=private), address)

    def accept(self) -> SocketStream:
        conn, _ = self._sock.accept()
        return SocketStream(conn)

    def close(self) -> None:
        _release_unix_socket(self._sock, self._address)


# ---------------------------------------------------------------------------
# Asyncio transports
# ---------------------------------------------------------------------------


class AsyncSocketStream:
    """Asyncio stream transport over a connected Unix socket."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer

    @classmethod
    async def connect(cls, address: str) -> Self:
        """Open a connection to the Unix socket at *address*."""
        _require_unix_sockets()
        reader, writer = await asyncio.open_unix_connection(address)
        logger.debug("Connected to Unix socket at %r", address)
        return cls(reader, writer)

    async def read_exact(self, size: int) -> bytes:
        return await self._reader.readexactly(size)

    async def write(self, data: bytes) -> None:
        self._writer.write(data)

    async def flush(self) -> None:
        await self._writer.drain()

    async def close(self) -> None:
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionError, OSError):
            pass


class AsyncSocketListener:
    """Asyncio listener transport over a bound Unix socket."""

    def __init__(self, sock: socket.socket, address: str) -> None:
        sock.setblocking(False)
        self._sock = sock
        self._address = address

    @classmethod
    def bind(cls, address: str, *, private: bool = True) -> Self:
        return cls(_bind_unix_socket(address, private=private), address)

    async def accept(self) -> AsyncSocketStream:
        loop = asyncio.get_running_loop()
        conn, _ = await loop.sock_accept(self._sock)
        reader, writer = await asyncio.open_unix_connection(sock=conn)
        return AsyncSocketStream(reader, writer)

    async def close(self) -> None:
        _release_unix_socket(self._sock, self._address)


__all__ = [
    "AsyncListenerTransport",
    "AsyncSocketListener",
    "AsyncSocketStream",
    "AsyncStreamTransport",
    "ListenerTransport",
    "SocketListener",
    "SocketStream",
    "StreamTransport",
]
