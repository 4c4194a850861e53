"""Command-line tools for inspecting and exercising gipc channels."""

from __future__ import annotations

import asyncio
import logging
import os

import click

from gipc.connection.sync import Connection, Listener
from gipc.demo import run_async_demo, run_sync_demo
from gipc.errors import ClosedError, DeserializeError, GipcError, IoError
from gipc.naming import is_abstract_address, resolve
from gipc.version import version_banner

_global_option = click.option(
    "--global",
    "global_",
    is_flag=True,
    help="Use the system-wide channel instead of the per-user one",
)


def _display_address(address: str) -> str:
    """Render abstract-namespace addresses with the conventional ``@`` prefix."""
    return "@" + address[1:] if is_abstract_address(address) else address


def _echo_until_closed(connection: Connection) -> int:
    """Echo every message back until the peer goes away; return the message count.

    A peer that vanishes without the closing handshake, or sends garbage,
    ends only its own session.
    """
    count = 0
    while True:
        try:
            message = connection.receive()
            click.echo(f"< {message!r}")
            connection.send(message)
        except ClosedError as exc:
            if exc.by_operation:
                return count
            raise
        except (IoError, DeserializeError) as exc:
            click.echo(f"Peer dropped: {exc}", err=True)
            return count
        count += 1


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("-v", "--verbose", is_flag=True, help="Log protocol events to stderr")
@click.pass_context
def cli(ctx: click.Context, version: bool, verbose: bool) -> None:
    """Exchange messages over named local channels."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    if version:
        click.echo(version_banner())
        ctx.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("resolve")
@click.argument("name")
@_global_option
def resolve_cmd(name: str, global_: bool) -> None:
    """Print the socket address channel NAME resolves to."""
    try:
        address = resolve(name, global_)
    except (ValueError, NotImplementedError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(_display_address(address))


@cli.command()
@click.argument("name")
@_global_option
@click.option("--once", is_flag=True, help="Stop after the first peer disconnects")
def listen(name: str, global_: bool, once: bool) -> None:
    """Accept connections on channel NAME and echo every message back."""
    try:
        with Listener.listen(name, global_) as listener:
            click.echo(f"Listening on {_display_address(resolve(name, global_))}")
            while True:
                with listener.accept() as connection:
                    count = _echo_until_closed(connection)
                click.echo(f"Peer disconnected after {count} message(s)")
                if once:
                    break
    except GipcError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.argument("name")
@click.argument("messages", nargs=-1, required=True)
@_global_option
@click.option("--no-reply", is_flag=True, help="Do not wait for a reply to each message")
def send(name: str, messages: tuple[str, ...], global_: bool, no_reply: bool) -> None:
    """Send MESSAGES to channel NAME, printing each reply."""
    try:
        with Connection.connect(name, global_) as connection:
            for message in messages:
                if no_reply:
                    connection.send(message)
                else:
                    click.echo(connection.send_and_receive(message))
    except GipcError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.option("--async", "use_async", is_flag=True, help="Use the asyncio API")
@click.option("--name", default=None, help="Channel name (default: derived from the PID)")
def demo(use_async: bool, name: str | None) -> None:
    """Run a listener and a client exchanging greetings in this process."""
    channel = name or f"gipc-demo-{os.getpid()}"
    try:
        if use_async:
            asyncio.run(run_async_demo(channel, click.echo))
        else:
            run_sync_demo(channel, click.echo)
    except GipcError as exc:
        raise click.ClickException(str(exc)) from exc


__all__ = ["cli"]
