"""Blocking connections and listeners.

Each instance has a single owner and does no locking of its own. Both
classes are context managers, and a connection or listener that is garbage
collected while still open is closed on a best-effort basis.

Usage::

    with Listener.listen("example") as listener:
        with listener.accept() as connection:
            connection.send("Hello, client!")
            reply = connection.receive(str)
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any, Self

from gipc.connection.state import Lifecycle
from gipc.errors import ClosedError, GipcError, io_error
from gipc.message import (
    CLOSING_CONNECTION,
    ClosingConnection,
    Data,
    coerce_payload,
    read_envelope,
    write_envelope,
)
from gipc.naming import resolve
from gipc.transports import SocketListener, SocketStream

if TYPE_CHECKING:
    from types import TracebackType

    from gipc.config import NamingConfig
    from gipc.transports import ListenerTransport, StreamTransport

logger = logging.getLogger(__name__)


class Connection:
    """A two-way message stream to another process."""

    def __init__(self, transport: StreamTransport) -> None:
        self._transport = transport
        self._lifecycle = Lifecycle()

    @classmethod
    def connect(
        cls,
        name: str,
        global_: bool = False,
        *,
        config: NamingConfig | None = None,
    ) -> Self:
        """Connect to the listener serving channel *name*."""
        address = resolve(name, global_, config=config)
        try:
            transport = SocketStream.connect(address)
        except OSError as exc:
            raise io_error("connect", exc) from exc
        logger.debug("Connection to channel %r opened", name)
        return cls(transport)

    def send(self, payload: Any) -> None:
        """Send *payload* to the peer.

        Raises:
            ClosedError: ``by_operation=False`` if this connection is closed.
            SerializeError: If *payload* cannot be encoded.
            IoError: If the transport write fails. The connection stays open.
        """
        self._lifecycle.ensure_open()
        write_envelope(self._transport, Data(payload))

    def receive[T](self, type_: type[T] | None = None) -> T:
        """Receive the next payload, validated against *type_* when given.

        Raises:
            ClosedError: ``by_operation=False`` if this connection is closed;
                ``by_operation=True`` if the peer closed it while receiving.
            DeserializeError: If the frame does not hold a valid message.
            IoError: If the transport read fails.
        """
        self._lifecycle.ensure_open()
        envelope = read_envelope(self._transport)
        if isinstance(envelope, ClosingConnection):
            logger.debug("Peer sent closing signal")
            self._shutdown()
            raise ClosedError(True)
        return coerce_payload(envelope.value, type_)

    def send_and_receive[T](self, payload: Any, type_: type[T] | None = None) -> T:
        """Send *payload*, then receive the reply."""
        self.send(payload)
        return self.receive(type_)

    def close(self) -> None:
        """Close this connection if it is still open. Never raises."""
        if self._lifecycle.closed:
            return
        # The peer may already be gone; the local close proceeds regardless.
        with contextlib.suppress(GipcError):
            write_envelope(self._transport, CLOSING_CONNECTION)
        self._shutdown()

    def is_closed(self) -> bool:
        return self._lifecycle.closed

    def _shutdown(self) -> None:
        self._lifecycle.mark_closed()
        self._transport.close()
        logger.debug("Connection closed")

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __del__(self) -> None:
        lifecycle = getattr(self, "_lifecycle", None)
        if lifecycle is not None and not lifecycle.closed:
            self.close()


class Listener:
    """Accepts incoming connections on a named channel."""

    def __init__(self, transport: ListenerTransport) -> None:
        self._transport = transport
        self._lifecycle = Lifecycle()

    @classmethod
    def listen(
        cls,
        name: str,
        global_: bool = False,
        *,
        config: NamingConfig | None = None,
    ) -> Self:
        """Listen for connections on channel *name*."""
        address = resolve(name, global_, config=config)
        try:
            transport = SocketListener.bind(address, private=not global_)
        except OSError as exc:
            raise io_error("bind", exc) from exc
        return cls(transport)

    def accept(self) -> Connection:
        """Block until a peer connects and return the new connection.

        Raises:
            ClosedError: ``by_operation=False`` if this listener is closed.
            IoError: If the transport fails to accept.
        """
        self._lifecycle.ensure_open()
        try:
            stream = self._transport.accept()
        except OSError as exc:
            raise io_error("accept", exc) from exc
        logger.debug("Accepted connection")
        return Connection(stream)

    def close(self) -> None:
        """Close this listener.

        Raises:
            ClosedError: ``by_operation=False`` if it was already closed.
            IoError: If the transport fails to close.
        """
        self._lifecycle.close_once()
        try:
            self._transport.close()
        except OSError as exc:
            raise io_error("close", exc) from exc

    def is_closed(self) -> bool:
        return self._lifecycle.closed

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._lifecycle.closed:
            self.close()

    def __del__(self) -> None:
        lifecycle = getattr(self, "_lifecycle", None)
        if lifecycle is not None and not lifecycle.closed:
            with contextlib.suppress(GipcError):
                self.close()


def connect(name: str, global_: bool = False, *, config: NamingConfig | None = None) -> Connection:
    """Connect to channel *name*; see ``Connection.connect``."""
    return Connection.connect(name, global_, config=config)


def listen(name: str, global_: bool = False, *, config: NamingConfig | None = None) -> Listener:
    """Listen on channel *name*; see ``Listener.listen``."""
    return Listener.listen(name, global_, config=config)


__all__ = ["Connection", "Listener", "connect", "listen"]
