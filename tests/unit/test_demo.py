"""Failure propagation in the in-process greeting demo."""

from __future__ import annotations

import pytest

from gipc import demo
from gipc.config import NamingConfig
from gipc.errors import IoError


@pytest.fixture
def path_config(short_tmp) -> NamingConfig:
    return NamingConfig(namespace="path", runtime_dir=short_tmp)


def test_sync_demo_reports_both_sides(path_config, channel_name) -> None:
    lines: list[str] = []

    demo.run_sync_demo(channel_name, lines.append, config=path_config)

    assert "[listener] The client thinks: That's nice!" in lines
    assert "[client] The weather is apparently sunny." in lines


def test_sync_demo_propagates_listener_failure(
    monkeypatch: pytest.MonkeyPatch, path_config, channel_name
) -> None:
    serve_one = demo._serve_one

    def serve_then_crash(listener, echo) -> None:
        serve_one(listener, echo)
        raise RuntimeError("listener crashed after the exchange")

    monkeypatch.setattr(demo, "_serve_one", serve_then_crash)

    with pytest.raises(RuntimeError, match="listener crashed"):
        demo.run_sync_demo(channel_name, lambda _line: None, config=path_config)


def test_sync_demo_client_failure_does_not_hang_on_pending_accept(
    monkeypatch: pytest.MonkeyPatch, path_config, channel_name
) -> None:
    def fail_before_connecting(name, echo, config) -> None:
        raise IoError("connect failed: refused")

    monkeypatch.setattr(demo, "_run_client", fail_before_connecting)

    with pytest.raises(IoError, match="connect failed"):
        demo.run_sync_demo(channel_name, lambda _line: None, config=path_config)


async def test_async_demo_reports_both_sides(path_config, channel_name) -> None:
    lines: list[str] = []

    await demo.run_async_demo(channel_name, lines.append, config=path_config)

    assert "[listener] The client greeted me back." in lines
    assert "[client] The weather is apparently sunny." in lines
