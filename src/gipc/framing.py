"""Length-prefixed framing for gipc messages.

Every frame on the wire is an 8-byte unsigned big-endian length followed by
exactly that many payload bytes::

    [ length : u64 BE ] [ payload : length bytes ]

No maximum frame size is enforced here. Peers that do not trust each other
must bound frame sizes themselves.

The read side is written once as a generator (``parse_frame``) that yields
the number of bytes it needs next and receives them back. ``read_frame`` and
``read_frame_async`` only drive that generator against a blocking or an
asyncio transport.
"""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING

from gipc.errors import IoError, io_error

if TYPE_CHECKING:
    from collections.abc import Generator

    from gipc.transports import AsyncStreamTransport, StreamTransport

HEADER = struct.Struct(">Q")
HEADER_SIZE = HEADER.size

type FrameParser = Generator[int, bytes, bytes]


def encode_frame(data: bytes) -> bytes:
    """Prefix *data* with its big-endian 8-byte length."""
    return HEADER.pack(len(data)) + data


def parse_frame() -> FrameParser:
    """Parse one frame, requesting exact byte counts from the caller."""
    header = yield HEADER_SIZE
    (size,) = HEADER.unpack(header)
    return (yield size)


def read_frame(transport: StreamTransport) -> bytes:
    """Read one complete frame payload from a blocking transport."""
    parser = parse_frame()
    wanted = next(parser)
    try:
        while True:
            wanted = parser.send(transport.read_exact(wanted))
    except StopIteration as done:
        return done.value
    except IoError:
        raise
    except (OSError, EOFError) as exc:
        raise io_error("read", exc) from exc


async def read_frame_async(transport: AsyncStreamTransport) -> bytes:
    """Read one complete frame payload from an asyncio transport."""
    parser = parse_frame()
    wanted = next(parser)
    try:
        while True:
            wanted = parser.send(await transport.read_exact(wanted))
    except StopIteration as done:
        return done.value
    except IoError:
        raise
    except (OSError, EOFError) as exc:
        raise io_error("read", exc) from exc


__all__ = [
    "HEADER_SIZE",
    "encode_frame",
    "parse_frame",
    "read_frame",
    "read_frame_async",
]
