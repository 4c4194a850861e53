"""CLI entry point for gipc."""

from __future__ import annotations

from gipc.cli import cli

if __name__ == "__main__":
    cli()
