"""Resolve logical channel names to local socket addresses."""

from __future__ import annotations

import logging
import platform
from pathlib import Path

from platformdirs import user_data_dir, user_runtime_dir

from gipc.config import NamingConfig, load_naming_config

logger = logging.getLogger(__name__)


def get_runtime_dir(config: NamingConfig | None = None) -> Path:
    """Get the directory holding per-user socket files."""
    config = config or load_naming_config()
    if config.runtime_dir is not None:
        return config.runtime_dir
    runtime_dir = Path(user_runtime_dir())
    if runtime_dir.is_dir():
        return runtime_dir
    return Path(user_data_dir())


def is_abstract_address(address: str) -> bool:
    """Whether *address* lives in the Linux abstract socket namespace."""
    return address.startswith("\0")


def resolve(name: str, global_: bool = False, *, config: NamingConfig | None = None) -> str:
    """Resolve channel *name* to a Unix-domain socket address.

    In the abstract namespace the address is the same for local and global
    channels. With socket files, local channels live in the user runtime
    directory and global channels in ``config.global_dir``.

    Raises:
        ValueError: If *name* is empty or contains a path separator or NUL.
        NotImplementedError: If a global socket file is requested on a
            platform without Unix sockets.
    """
    if not name or "/" in name or "\0" in name:
        msg = f"Invalid channel name: {name!r}"
        raise ValueError(msg)

    config = config or load_naming_config()
    if config.uses_abstract_namespace:
        address = f"\0{name}{config.socket_suffix}"
    elif global_:
        if platform.system() == "Windows":
            msg = "Global channel names are not supported on Windows"
            raise NotImplementedError(msg)
        address = str(config.global_dir / f"{name}.sock")
    else:
        address = str(get_runtime_dir(config) / f"{name}.sock")

    logger.debug("Resolved channel %r (global=%s) to %r", name, global_, address)
    return address


__all__ = [
    "get_runtime_dir",
    "is_abstract_address",
    "resolve",
]
