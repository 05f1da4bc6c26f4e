"""Option parsing shared by ``hark serve`` and ``hark info``."""

from __future__ import annotations

import click


def parse_socket_addr(value: str) -> tuple[str, int]:
    """Split ``HOST:PORT`` (``[v6]:PORT`` for IPv6) into its parts.

    Raises:
        click.BadParameter: Malformed address or port out of range.
    """
    host, sep, port_text = value.rpartition(":")
    if not sep or not host or not port_text.isdigit():
        msg = f"expected HOST:PORT, got {value!r}"
        raise click.BadParameter(msg, param_hint="--socket-addr")
    port = int(port_text)
    if not 1 <= port <= 65535:
        msg = f"port {port} is out of range"
        raise click.BadParameter(msg, param_hint="--socket-addr")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port


def resolve_listen_address(
    host: str,
    port: int | None,
    socket_addr: str | None,
    default_port: int,
) -> tuple[str, int]:
    """Pick the listen address from ``--host``/``--port`` or ``--socket-addr``.

    Raises:
        click.UsageError: Both ``--port`` and ``--socket-addr`` were given.
    """
    if socket_addr is not None:
        if port is not None:
            msg = "--port and --socket-addr are mutually exclusive"
            raise click.UsageError(msg)
        return parse_socket_addr(socket_addr)
    return host, port if port is not None else default_port
