"""Asyncio connections and listeners.

Instances may be shared between tasks. Every operation holds a per-instance
``asyncio.Lock`` for its whole duration, so concurrent senders and receivers
never interleave frames. ``send_and_receive`` holds the lock across both
halves, so no other task can take the reply.

Unlike the blocking classes, these are never closed on garbage collection:
call ``close()`` or use ``async with``.

Cancelling a pending ``receive`` (for example through ``asyncio.timeout``)
closes the connection, because a partly read frame cannot be recovered.

Usage::

    listener = await AsyncListener.listen("example")
    while True:
        connection = await listener.accept()
        asyncio.create_task(handle(connection))
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any, Self

from gipc.connection.state import Lifecycle
from gipc.errors import ClosedError, GipcError, JoinError, io_error
from gipc.message import (
    CLOSING_CONNECTION,
    ClosingConnection,
    Data,
    coerce_payload,
    read_envelope_async,
    write_envelope_async,
)
from gipc.naming import resolve
from gipc.transports import AsyncSocketListener, AsyncSocketStream

if TYPE_CHECKING:
    from types import TracebackType

    from gipc.config import NamingConfig
    from gipc.transports import AsyncListenerTransport, AsyncStreamTransport

logger = logging.getLogger(__name__)


class AsyncConnection:
    """A two-way message stream to another process, shareable between tasks."""

    def __init__(self, transport: AsyncStreamTransport) -> None:
        self._transport = transport
        self._lifecycle = Lifecycle()
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(
        cls,
        name: str,
        global_: bool = False,
        *,
        config: NamingConfig | None = None,
    ) -> Self:
        """Connect to the listener serving channel *name*."""
        address = resolve(name, global_, config=config)
        try:
            transport = await AsyncSocketStream.connect(address)
        except OSError as exc:
            raise io_error("connect", exc) from exc
        logger.debug("Connection to channel %r opened", name)
        return cls(transport)

    async def send(self, payload: Any) -> None:
        """Send *payload* to the peer. Errors match ``Connection.send``."""
        async with self._lock:
            await self._send(payload)

    async def receive[T](self, type_: type[T] | None = None) -> T:
        """Receive the next payload. Errors match ``Connection.receive``."""
        async with self._lock:
            return await self._receive(type_)

    async def send_and_receive[T](self, payload: Any, type_: type[T] | None = None) -> T:
        """Send *payload* and receive the reply as one locked exchange."""
        async with self._lock:
            await self._send(payload)
            return await self._receive(type_)

    async def close(self) -> None:
        """Close this connection if it is still open.

        Never raises a gipc error. If the caller is cancelled while the
        closing signal is in flight, the transport is still closed before
        the cancellation propagates.
        """
        async with self._lock:
            if self._lifecycle.closed:
                return
            try:
                with contextlib.suppress(GipcError):
                    await write_envelope_async(self._transport, CLOSING_CONNECTION)
            finally:
                await self._shutdown()

    def is_closed(self) -> bool:
        # Only written under the lock; reading it needs no suspension.
        return self._lifecycle.closed

    async def _send(self, payload: Any) -> None:
        self._lifecycle.ensure_open()
        await write_envelope_async(self._transport, Data(payload))

    async def _receive[T](self, type_: type[T] | None) -> T:
        self._lifecycle.ensure_open()
        try:
            envelope = await read_envelope_async(self._transport)
        except asyncio.CancelledError:
            # Part of a frame may already be consumed; the stream cannot be resynchronised.
            logger.debug("Receive cancelled mid-frame; closing connection")
            await self._shutdown()
            raise
        if isinstance(envelope, ClosingConnection):
            logger.debug("Peer sent closing signal")
            await self._shutdown()
            raise ClosedError(True)
        return coerce_payload(envelope.value, type_)

    async def _shutdown(self) -> None:
        self._lifecycle.mark_closed()
        await self._transport.close()
        logger.debug("Connection closed")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class AsyncListener:
    """Accepts incoming connections on a named channel, shareable between tasks."""

    def __init__(self, transport: AsyncListenerTransport) -> None:
        self._transport = transport
        self._lifecycle = Lifecycle()
        self._lock = asyncio.Lock()

    @classmethod
    async def listen(
        cls,
        name: str,
        global_: bool = False,
        *,
        config: NamingConfig | None = None,
    ) -> Self:
        """Listen for connections on channel *name*."""
        address = resolve(name, global_, config=config)
        try:
            transport = AsyncSocketListener.bind(address, private=not global_)
        except OSError as exc:
            raise io_error("bind", exc) from exc
        return cls(transport)

    async def accept(self) -> AsyncConnection:
        """Wait until a peer connects and return the new connection.

        The lock is held while waiting, so a concurrent ``close()`` completes
        only after this call returns.
        """
        async with self._lock:
            self._lifecycle.ensure_open()
            try:
                stream = await self._transport.accept()
            except OSError as exc:
                raise io_error("accept", exc) from exc
        logger.debug("Accepted connection")
        return AsyncConnection(stream)

    async def close(self) -> None:
        """Close this listener; a second call raises ``ClosedError(False)``."""
        async with self._lock:
            self._lifecycle.close_once()
            try:
                await self._transport.close()
            except OSError as exc:
                raise io_error("close", exc) from exc

    def is_closed(self) -> bool:
        return self._lifecycle.closed

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._lifecycle.closed:
            await self.close()


async def connect(
    name: str,
    global_: bool = False,
    *,
    config: NamingConfig | None = None,
) -> AsyncConnection:
    """Connect to channel *name*; see ``AsyncConnection.connect``."""
    return await AsyncConnection.connect(name, global_, config=config)


async def listen(
    name: str,
    global_: bool = False,
    *,
    config: NamingConfig | None = None,
) -> AsyncListener:
    """Listen on channel *name*; see ``AsyncListener.listen``."""
    return await AsyncListener.listen(name, global_, config=config)


async def join[T](task: asyncio.Task[T]) -> T:
    """Await a spawned handler task and return its result.

    gipc errors raised by the task propagate unchanged.

    Raises:
        JoinError: If the task was cancelled or raised any other exception.
    """
    try:
        return await task
    except GipcError:
        raise
    except asyncio.CancelledError as exc:
        current = asyncio.current_task()
        if not task.cancelled() or (current is not None and current.cancelling()):
            raise
        msg = f"task {task.get_name()} was cancelled"
        raise JoinError(msg) from exc
    except Exception as exc:
        msg = f"task {task.get_name()} failed: {exc}"
        raise JoinError(msg) from exc


__all__ = ["AsyncConnection", "AsyncListener", "connect", "join", "listen"]
