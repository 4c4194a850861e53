"""Greeting and weather exchange between a listener and a client.

Runs both peers inside one process, either on two threads with the
blocking API or as two tasks with the asyncio API.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import TYPE_CHECKING

from gipc.connection.aio import AsyncConnection, AsyncListener, join
from gipc.connection.sync import Connection, Listener
from gipc.errors import GipcError

if TYPE_CHECKING:
    from collections.abc import Callable

    from gipc.config import NamingConfig

    Echo = Callable[[str], None]

logger = logging.getLogger(__name__)

GREETING = "Hello, client!"
GREETING_REPLY = "Hello, server!"
WEATHER_QUESTION = "What's the weather like today?"
WEATHER = "sunny"
WEATHER_THOUGHTS = "That's nice!"


def _serve_one(listener: Listener, echo: Echo) -> None:
    with listener, listener.accept() as connection:
        connection.send(GREETING)
        if connection.receive(str) == GREETING_REPLY:
            echo("[listener] The client greeted me back.")
        if connection.receive(str) == WEATHER_QUESTION:
            thoughts = connection.send_and_receive(WEATHER, str)
            echo(f"[listener] The client thinks: {thoughts}")


def _run_client(name: str, echo: Echo, config: NamingConfig | None) -> None:
    with Connection.connect(name, config=config) as connection:
        if connection.receive(str) == GREETING:
            echo("[client] The listener greeted me; greeting back.")
            connection.send(GREETING_REPLY)
        weather = connection.send_and_receive(WEATHER_QUESTION, str)
        echo(f"[client] The weather is apparently {weather}.")
        connection.send(WEATHER_THOUGHTS)


def _wake_listener(name: str, config: NamingConfig | None) -> None:
    """Unblock a listener thread still waiting in ``accept``."""
    with contextlib.suppress(GipcError):
        Connection.connect(name, config=config).close()


def run_sync_demo(name: str, echo: Echo, *, config: NamingConfig | None = None) -> None:
    """Run the exchange with a listener thread and a client on this thread.

    Failures on either side propagate. When both fail, the client's error wins.
    """
    logger.debug("Running blocking demo on channel %r", name)
    listener = Listener.listen(name, config=config)
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="gipc-demo-listener") as pool:
        served = pool.submit(_serve_one, listener, echo)
        try:
            _run_client(name, echo, config)
        except BaseException:
            _wake_listener(name, config)
            wait([served])
            raise
        served.result()


async def _serve_one_async(listener: AsyncListener, echo: Echo) -> None:
    async with listener:
        async with await listener.accept() as connection:
            await connection.send(GREETING)
            if await connection.receive(str) == GREETING_REPLY:
                echo("[listener] The client greeted me back.")
            if await connection.receive(str) == WEATHER_QUESTION:
                thoughts = await connection.send_and_receive(WEATHER, str)
                echo(f"[listener] The client thinks: {thoughts}")


async def _run_client_async(name: str, echo: Echo, config: NamingConfig | None) -> None:
    async with await AsyncConnection.connect(name, config=config) as connection:
        if await connection.receive(str) == GREETING:
            echo("[client] The listener greeted me; greeting back.")
            await connection.send(GREETING_REPLY)
        weather = await connection.send_and_receive(WEATHER_QUESTION, str)
        echo(f"[client] The weather is apparently {weather}.")
        await connection.send(WEATHER_THOUGHTS)


async def run_async_demo(name: str, echo: Echo, *, config: NamingConfig | None = None) -> None:
    """Run the exchange with the listener and the client as asyncio tasks."""
    logger.debug("Running asyncio demo on channel %r", name)
    listener = await AsyncListener.listen(name, config=config)
    server = asyncio.create_task(_serve_one_async(listener, echo), name="gipc-demo-listener")
    try:
        await _run_client_async(name, echo, config)
    except BaseException:
        server.cancel()
        await asyncio.wait({server})
        raise
    await join(server)


__all__ = [
    "GREETING",
    "GREETING_REPLY",
    "WEATHER",
    "WEATHER_QUESTION",
    "WEATHER_THOUGHTS",
    "run_async_demo",
    "run_sync_demo",
]
