"""Envelope protocol: the messages that travel inside frames.

An envelope is either a user payload (``Data``) or the closing signal
(``ClosingConnection``) a peer sends before it shuts its end down. Envelopes
are CBOR-encoded with the externally tagged shape other gipc peers use:

* ``ClosingConnection`` is the text string ``"ClosingConnection"``
* ``Data(value)`` is the single-entry map ``{"Data": value}``
"""

from __future__ import annotations

import dataclasses
import functools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import cbor2
from pydantic import BaseModel, TypeAdapter, ValidationError

from gipc.errors import DeserializeError, IoError, SerializeError, io_error
from gipc.framing import encode_frame, read_frame, read_frame_async

if TYPE_CHECKING:
    from gipc.transports import AsyncStreamTransport, StreamTransport

_CLOSING_TAG: Final = "ClosingConnection"
_DATA_TAG: Final = "Data"


@dataclass(frozen=True)
class ClosingConnection:
    """Signal that the sending peer is about to close the connection."""


@dataclass(frozen=True)
class Data[T]:
    """Container for user-defined data."""

    value: T


type Envelope[T] = ClosingConnection | Data[T]

CLOSING_CONNECTION: Final = ClosingConnection()


def _encode_default(encoder: cbor2.CBOREncoder, value: Any) -> None:
    """Encode pydantic models and dataclass instances as CBOR maps."""
    if isinstance(value, BaseModel):
        encoder.encode(value.model_dump(mode="python"))
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        encoder.encode(dataclasses.asdict(value))
    else:
        msg = f"cannot serialize object of type {type(value).__name__}"
        raise cbor2.CBOREncodeError(msg)


def encode_envelope(envelope: Envelope[Any]) -> bytes:
    """Encode *envelope* to CBOR bytes."""
    if isinstance(envelope, ClosingConnection):
        wire: Any = _CLOSING_TAG
    else:
        wire = {_DATA_TAG: envelope.value}
    try:
        return cbor2.dumps(wire, default=_encode_default)
    except (cbor2.CBOREncodeError, TypeError, ValueError) as exc:
        raise SerializeError(str(exc)) from exc


def decode_envelope(raw: bytes) -> Envelope[Any]:
    """Decode CBOR bytes into an envelope."""
    try:
        wire = cbor2.loads(raw)
    except (cbor2.CBORDecodeError, TypeError, ValueError) as exc:
        raise DeserializeError(str(exc)) from exc

    if wire == _CLOSING_TAG:
        return CLOSING_CONNECTION
    if isinstance(wire, dict) and len(wire) == 1 and _DATA_TAG in wire:
        return Data(wire[_DATA_TAG])
    msg = f"unrecognised envelope: expected {_CLOSING_TAG!r} or a {_DATA_TAG!r} map"
    raise DeserializeError(msg)


@functools.lru_cache(maxsize=128)
def _adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


def coerce_payload[T](value: Any, type_: type[T] | None) -> T:
    """Validate a decoded payload against *type_* when one is requested."""
    if type_ is None:
        return value
    try:
        return _adapter(type_).validate_python(value)
    except ValidationError as exc:
        raise DeserializeError(str(exc)) from exc


def frame_envelope(envelope: Envelope[Any]) -> bytes:
    """Encode *envelope* and wrap it in a frame ready for the wire."""
    return encode_frame(encode_envelope(envelope))


CLOSING_FRAME: Final = frame_envelope(CLOSING_CONNECTION)


def write_envelope(transport: StreamTransport, envelope: Envelope[Any]) -> None:
    """Write *envelope* as one frame to a blocking transport and flush it."""
    frame = frame_envelope(envelope)
    try:
        transport.write(frame)
        transport.flush()
    except IoError:
        raise
    except OSError as exc:
        raise io_error("write", exc) from exc


async def write_envelope_async(transport: AsyncStreamTransport, envelope: Envelope[Any]) -> None:
    """Write *envelope* as one frame to an asyncio transport and flush it."""
    frame = frame_envelope(envelope)
    try:
        await transport.write(frame)
        await transport.flush()
    except IoError:
        raise
    except OSError as exc:
        raise io_error("write", exc) from exc


def read_envelope(transport: StreamTransport) -> Envelope[Any]:
    """Read one envelope from a blocking transport."""
    return decode_envelope(read_frame(transport))


async def read_envelope_async(transport: AsyncStreamTransport) -> Envelope[Any]:
    """Read one envelope from an asyncio transport."""
    return decode_envelope(await read_frame_async(transport))


__all__ = [
    "CLOSING_CONNECTION",
    "CLOSING_FRAME",
    "ClosingConnection",
    "Data",
    "Envelope",
    "coerce_payload",
    "decode_envelope",
    "encode_envelope",
    "frame_envelope",
    "read_envelope",
    "read_envelope_async",
    "write_envelope",
    "write_envelope_async",
]
