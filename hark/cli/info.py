"""`hark info` command: print the server info a gateway would publish."""

from __future__ import annotations

import json

import click

from hark._types import OperatingMode
from hark.cli._options import resolve_listen_address
from hark.cli.main import cli
from hark.config.settings import get_settings
from hark.server.context import build_server_info

_s = get_settings()


@cli.command()
@click.option("--model-name", default=_s.engine.model_name, show_default=True, help="Model name.")
@click.option(
    "--model-alias",
    default=_s.engine.model_alias,
    show_default=True,
    help="Alias published in the info extras.",
)
@click.option(
    "--task",
    type=click.Choice([m.value for m in OperatingMode]),
    default=_s.engine.task,
    show_default=True,
    help="Operating mode.",
)
@click.option("--port", type=int, default=None, help=f"HTTP port [default: {_s.server.port}].")
@click.option("--socket-addr", default=None, help="Listen address as HOST:PORT.")
def info(
    model_name: str,
    model_alias: str,
    task: str,
    port: int | None,
    socket_addr: str | None,
) -> None:
    """Print the /v1/info payload for the given options, without starting a server."""
    _, resolved_port = resolve_listen_address(
        _s.server.host, port, socket_addr, default_port=_s.server.port
    )
    server_info = build_server_info(OperatingMode(task), model_name, resolved_port, model_alias)
    click.echo(json.dumps(server_info.to_payload(), indent=2))
