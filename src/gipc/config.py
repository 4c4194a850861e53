"""Configuration for channel name resolution."""

from __future__ import annotations

import os
import platform
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

type NamespaceLiteral = Literal["auto", "abstract", "path"]

ENV_NAMESPACE = "GIPC_NAMESPACE"
ENV_RUNTIME_DIR = "GIPC_RUNTIME_DIR"
ENV_GLOBAL_DIR = "GIPC_GLOBAL_DIR"


class NamingConfig(BaseModel):
    """How logical channel names map onto socket addresses."""

    namespace: NamespaceLiteral = Field(
        default="auto",
        description=(
            "Address family for channel names: abstract (Linux abstract namespace), "
            "path (socket files), or auto (abstract where supported)"
        ),
    )
    runtime_dir: Path | None = Field(
        default=None,
        description="Directory for per-user socket files (None = platform runtime dir)",
    )
    global_dir: Path = Field(
        default=Path("/run"),
        description="Directory for system-wide socket files",
    )
    socket_suffix: str = Field(
        default="-gipc.sock",
        description="Suffix appended to names in the abstract namespace",
    )

    @field_validator("namespace", mode="before")
    @classmethod
    def _normalize_namespace(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def uses_abstract_namespace(self) -> bool:
        """Whether names resolve into the Linux abstract socket namespace."""
        if self.namespace == "auto":
            return platform.system() == "Linux"
        return self.namespace == "abstract"


def load_naming_config() -> NamingConfig:
    """Build a ``NamingConfig`` from ``GIPC_*`` environment overrides."""
    values: dict[str, object] = {}
    namespace = os.environ.get(ENV_NAMESPACE)
    if namespace:
        values["namespace"] = namespace
    runtime_dir = os.environ.get(ENV_RUNTIME_DIR)
    if runtime_dir:
        values["runtime_dir"] = Path(runtime_dir).resolve()
    global_dir = os.environ.get(ENV_GLOBAL_DIR)
    if global_dir:
        values["global_dir"] = Path(global_dir).resolve()
    return NamingConfig.model_validate(values)


__all__ = [
    "ENV_GLOBAL_DIR",
    "ENV_NAMESPACE",
    "ENV_RUNTIME_DIR",
    "NamespaceLiteral",
    "NamingConfig",
    "load_naming_config",
]
