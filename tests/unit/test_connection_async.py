"""Asyncio AsyncConnection and AsyncListener, including lock behaviour."""

from __future__ import annotations

import asyncio

import pytest

from gipc.connection import AsyncConnection, AsyncListener, Connection
from gipc.connection.aio import join
from gipc.errors import ClosedError, IoError, JoinError
from gipc.framing import encode_frame, read_frame_async
from gipc.message import CLOSING_FRAME, Data, decode_envelope, encode_envelope
from tests.helpers.transports import (
    AsyncRecordingListener,
    AsyncRecordingStream,
    RecordingStream,
)


def _frames(*payloads: object) -> bytes:
    return b"".join(encode_frame(encode_envelope(Data(p))) for p in payloads)


async def test_send_and_receive_between_peers(async_connection_pair) -> None:
    a, b = async_connection_pair

    await a.send("Hello, client!")
    assert await b.receive(str) == "Hello, client!"

    await b.send(["Hello", "server"])
    assert await a.receive() == ["Hello", "server"]


async def test_send_and_receive_is_one_exchange(async_connection_pair) -> None:
    a, b = async_connection_pair

    async def answer() -> str:
        question = await b.receive(str)
        await b.send("sunny")
        return question

    reply, question = await asyncio.gather(
        a.send_and_receive("What's the weather like today?", str),
        answer(),
    )

    assert question == "What's the weather like today?"
    assert reply == "sunny"


async def test_concurrent_sends_never_interleave_frames(async_connection_pair) -> None:
    a, b = async_connection_pair
    first, second = b"x" * (1 << 20), b"y" * (1 << 20)

    async def collect() -> list[bytes]:
        return [await b.receive(bytes), await b.receive(bytes)]

    _, _, received = await asyncio.gather(a.send(first), a.send(second), collect())

    assert sorted(received) == [first, second]


async def test_concurrent_sends_write_whole_frames() -> None:
    stream = AsyncRecordingStream()
    connection = AsyncConnection(stream)

    await asyncio.gather(*(connection.send(i) for i in range(10)))

    reader = AsyncRecordingStream(bytes(stream.written))
    payloads = [decode_envelope(await read_frame_async(reader)).value for _ in range(10)]
    assert sorted(payloads) == list(range(10))
    assert stream.calls == ["write", "flush"] * 10


async def test_peer_close_unblocks_pending_receive(async_connection_pair) -> None:
    a, b = async_connection_pair

    pending = asyncio.create_task(b.receive())
    await asyncio.sleep(0.01)
    await a.close()

    with pytest.raises(ClosedError) as exc_info:
        await pending
    assert exc_info.value.by_operation is True
    assert b.is_closed()
    assert a.is_closed()


async def test_close_is_idempotent_and_sends_one_signal() -> None:
    stream = AsyncRecordingStream()
    connection = AsyncConnection(stream)

    await connection.close()
    await connection.close()

    assert bytes(stream.written) == CLOSING_FRAME
    assert stream.calls == ["write", "flush", "close"]


async def test_close_ignores_failed_closing_signal() -> None:
    stream = AsyncRecordingStream()
    stream.fail_writes = True
    connection = AsyncConnection(stream)

    await connection.close()

    assert connection.is_closed()
    assert stream.calls[-1] == "close"


async def test_operations_after_close_fail_without_touching_transport() -> None:
    stream = AsyncRecordingStream(_frames("pending"))
    connection = AsyncConnection(stream)
    await connection.close()
    calls_after_close = list(stream.calls)

    for operation in (connection.send("x"), connection.receive(), connection.send_and_receive("x")):
        with pytest.raises(ClosedError) as exc_info:
            await operation
        assert exc_info.value.by_operation is False

    assert stream.calls == calls_after_close


async def test_io_failure_on_send_does_not_close() -> None:
    stream = AsyncRecordingStream()
    stream.fail_writes = True
    connection = AsyncConnection(stream)

    with pytest.raises(IoError):
        await connection.send_and_receive("question")

    assert not connection.is_closed()
    assert "read_exact" not in stream.calls


async def test_async_with_closes_connection() -> None:
    stream = AsyncRecordingStream()

    async with AsyncConnection(stream) as connection:
        await connection.send(1)

    assert connection.is_closed()
    assert bytes(stream.written) == _frames(1) + CLOSING_FRAME


async def test_both_forms_emit_identical_wire_traffic() -> None:
    blocking_stream = RecordingStream(_frames("reply") + CLOSING_FRAME)
    cooperative_stream = AsyncRecordingStream(_frames("reply") + CLOSING_FRAME)
    blocking, cooperative = Connection(blocking_stream), AsyncConnection(cooperative_stream)

    blocking.send({"n": 1})
    await cooperative.send({"n": 1})
    assert blocking.send_and_receive("q") == await cooperative.send_and_receive("q")

    with pytest.raises(ClosedError) as blocking_error:
        blocking.receive()
    with pytest.raises(ClosedError) as cooperative_error:
        await cooperative.receive()
    blocking.close()
    await cooperative.close()

    assert blocking_error.value.by_operation == cooperative_error.value.by_operation
    assert cooperative_stream.written == blocking_stream.written
    assert cooperative_stream.calls == blocking_stream.calls


async def test_listener_accept_wraps_stream() -> None:
    listener = AsyncListener(AsyncRecordingListener(AsyncRecordingStream(_frames("hi"))))

    connection = await listener.accept()

    assert isinstance(connection, AsyncConnection)
    assert await connection.receive() == "hi"


async def test_listener_accept_failure_is_an_io_error() -> None:
    listener = AsyncListener(AsyncRecordingListener())

    with pytest.raises(IoError):
        await listener.accept()


async def test_listener_close_is_not_idempotent() -> None:
    transport = AsyncRecordingListener(AsyncRecordingStream())
    listener = AsyncListener(transport)

    await listener.close()
    with pytest.raises(ClosedError) as close_error:
        await listener.close()
    with pytest.raises(ClosedError) as accept_error:
        await listener.accept()

    assert close_error.value.by_operation is False
    assert accept_error.value.by_operation is False
    assert transport.calls == ["close"]
    assert listener.is_closed()


async def test_listener_async_with_tolerates_explicit_close() -> None:
    transport = AsyncRecordingListener()

    async with AsyncListener(transport) as listener:
        await listener.close()

    assert transport.calls == ["close"]


async def test_join_returns_task_result() -> None:
    async def handler() -> str:
        return "done"

    assert await join(asyncio.create_task(handler())) == "done"


async def test_join_passes_gipc_errors_through() -> None:
    async def handler() -> None:
        raise ClosedError(True)

    with pytest.raises(ClosedError):
        await join(asyncio.create_task(handler()))


async def test_join_reports_crashed_task() -> None:
    async def handler() -> None:
        raise RuntimeError("handler crashed")

    with pytest.raises(JoinError, match="handler crashed") as exc_info:
        await join(asyncio.create_task(handler(), name="worker"))
    assert isinstance(exc_info.value.__cause__, RuntimeError)


async def test_join_reports_cancelled_task() -> None:
    task = asyncio.create_task(asyncio.sleep(10), name="sleeper")
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(JoinError, match="sleeper was cancelled"):
        await join(task)


async def test_close_still_closes_transport_when_cancelled_mid_signal() -> None:
    stream = AsyncRecordingStream()
    stream.stall_flush = True
    connection = AsyncConnection(stream)

    with pytest.raises(TimeoutError):
        async with asyncio.timeout(0.05):
            await connection.close()

    assert connection.is_closed()
    assert stream.calls == ["write", "flush", "close"]


async def test_receive_cancelled_mid_frame_closes_connection() -> None:
    frame = _frames("hello world")
    stream = AsyncRecordingStream(frame[:10])
    stream.stall_reads = True
    connection = AsyncConnection(stream)

    with pytest.raises(TimeoutError):
        async with asyncio.timeout(0.05):
            await connection.receive()

    assert connection.is_closed()
    assert stream.calls == ["read_exact", "read_exact", "close"]
    with pytest.raises(ClosedError) as exc_info:
        await connection.receive()
    assert exc_info.value.by_operation is False


async def test_timed_out_socket_receive_closes_connection(async_connection_pair) -> None:
    a, b = async_connection_pair
    frame = _frames("hello world")

    await b._transport.write(frame[:10])
    await b._transport.flush()
    with pytest.raises(TimeoutError):
        async with asyncio.timeout(0.05):
            await a.receive()

    assert a.is_closed()
    with pytest.raises(ClosedError):
        await a.receive(str)
