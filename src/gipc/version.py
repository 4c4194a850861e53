"""Version reporting for gipc and the wire codec it runs on."""

from __future__ import annotations

import platform
from functools import cache
from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION = "gipc"


def _installed(distribution: str) -> str | None:
    try:
        return version(distribution)
    except PackageNotFoundError:
        return None


@cache
def get_gipc_version() -> str:
    """Installed gipc version, ``"dev"`` for an uninstalled checkout."""
    return _installed(DISTRIBUTION) or "dev"


def version_banner() -> str:
    """One-line report for ``gipc --version``.

    Includes the cbor2 version, since peers must agree on the CBOR encoding.
    """
    cbor2_version = _installed("cbor2") or "unknown"
    return (
        f"{DISTRIBUTION} {get_gipc_version()} "
        f"(cbor2 {cbor2_version}, Python {platform.python_version()})"
    )


__all__ = ["DISTRIBUTION", "get_gipc_version", "version_banner"]
