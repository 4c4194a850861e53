"""Pytest fixtures for gipc tests."""

from __future__ import annotations

import asyncio
import os
import platform
import shutil
import socket
import tempfile
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from hypothesis import Phase, Verbosity, settings

from gipc.config import ENV_GLOBAL_DIR, ENV_NAMESPACE, ENV_RUNTIME_DIR, NamingConfig
from gipc.connection import AsyncConnection, Connection
from gipc.transports import AsyncSocketStream, SocketStream

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Generator


settings.register_profile(
    "ci",
    max_examples=100,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=20,
    deadline=500,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture(autouse=True)
def _mock_platform_system(monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest) -> None:
    """Handle @pytest.mark.mock_platform_system("Windows") marker."""
    marker = request.node.get_closest_marker("mock_platform_system")
    if marker:
        target_platform = marker.args[0]
        monkeypatch.setattr("platform.system", lambda: target_platform)


@pytest.fixture(autouse=True)
def _isolate_naming_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host GIPC_* overrides from leaking into tests."""
    for var in (ENV_NAMESPACE, ENV_RUNTIME_DIR, ENV_GLOBAL_DIR):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def short_tmp() -> Generator[Path, None, None]:
    """Create a short temp directory for Unix socket paths (macOS 104-byte limit)."""
    d = tempfile.mkdtemp(prefix="g-", dir="/tmp")
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def channel_name() -> str:
    return f"gipc-test-{uuid.uuid4().hex[:12]}"


@pytest.fixture(
    params=[
        pytest.param(
            "abstract",
            marks=pytest.mark.skipif(
                platform.system() != "Linux", reason="Abstract namespace is Linux-only"
            ),
        ),
        "path",
    ]
)
def naming_config(request: pytest.FixtureRequest, short_tmp: Path) -> NamingConfig:
    """Naming configuration for each socket address family the platform has."""
    return NamingConfig(namespace=request.param, runtime_dir=short_tmp, global_dir=short_tmp)


@pytest.fixture
def connection_pair() -> Generator[tuple[Connection, Connection], None, None]:
    """Two blocking connections joined by a socket pair."""
    left, right = socket.socketpair()
    a, b = Connection(SocketStream(left)), Connection(SocketStream(right))
    yield a, b
    a.close()
    b.close()


@pytest.fixture
async def async_connection_pair() -> AsyncGenerator[tuple[AsyncConnection, AsyncConnection], None]:
    """Two asyncio connections joined by a socket pair."""
    left, right = socket.socketpair()
    streams = []
    for sock in (left, right):
        reader, writer = await asyncio.open_unix_connection(sock=sock)
        streams.append(AsyncSocketStream(reader, writer))
    a, b = AsyncConnection(streams[0]), AsyncConnection(streams[1])
    yield a, b
    await a.close()
    await b.close()
