"""`hark serve` command: loads the engine and starts the API server."""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import TYPE_CHECKING

import click

from hark._types import OperatingMode
from hark.cli._options import resolve_listen_address
from hark.cli.main import cli
from hark.config.settings import get_settings
from hark.engines import ENGINE_PACKAGE, load_engine
from hark.exceptions import ConfigError, EngineError
from hark.logging import LOG_FORMATS, configure_logging, get_logger

if TYPE_CHECKING:
    from hark.config.settings import HarkSettings
    from hark.server.context import GatewayContext

logger = get_logger("cli.serve")

_s = get_settings()
DEFAULT_HOST = _s.server.host
DEFAULT_PORT = _s.server.port


@cli.command()
@click.option("--model-name", default=_s.engine.model_name, show_default=True, help="Model name.")
@click.option(
    "--model-alias",
    default=_s.engine.model_alias,
    show_default=True,
    help="Alias under which the model is registered.",
)
@click.option("--model", "model_path", default=_s.engine.model_path, help="Path to the model.")
@click.option(
    "--engine",
    type=click.Choice(sorted(ENGINE_PACKAGE)),
    default=_s.engine.engine,
    show_default=True,
    help="Inference engine.",
)
@click.option(
    "--threads", default=_s.engine.threads, type=int, show_default=True, help="CPU threads."
)
@click.option(
    "--processors",
    default=_s.engine.processors,
    type=int,
    show_default=True,
    help="Parallel decoding workers inside the engine.",
)
@click.option(
    "--task",
    type=click.Choice([m.value for m in OperatingMode]),
    default=_s.engine.task,
    show_default=True,
    help="Tasks the server accepts.",
)
@click.option(
    "--no-audio-preprocessor",
    is_flag=True,
    default=not _s.engine.audio_preprocessor,
    help="Require uploads to already be mono WAV at the engine sample rate.",
)
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="API Server host.")
@click.option("--port", default=None, type=int, help=f"HTTP port [default: {DEFAULT_PORT}].")
@click.option(
    "--socket-addr",
    default=None,
    help="Listen address as HOST:PORT (cannot be combined with --port).",
)
@click.option(
    "--archive-dir",
    default=_s.server.archive_dir,
    show_default=True,
    help="Directory where uploads and generated audio are archived.",
)
@click.option(
    "--log-format",
    type=click.Choice(list(LOG_FORMATS)),
    default="console",
    show_default=True,
    help="Log format.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    show_default=True,
    help="Log level.",
)
def serve(
    model_name: str,
    model_alias: str,
    model_path: str | None,
    engine: str,
    threads: int,
    processors: int,
    task: str,
    no_audio_preprocessor: bool,
    host: str,
    port: int | None,
    socket_addr: str | None,
    archive_dir: str,
    log_format: str,
    log_level: str,
) -> None:
    """Starts the Hark API Server with a single loaded model."""
    configure_logging(log_format=log_format, level=log_level)
    listen_host, listen_port = resolve_listen_address(
        host, port, socket_addr, default_port=DEFAULT_PORT
    )

    settings = _override_settings(
        get_settings(),
        server={"host": listen_host, "port": listen_port, "archive_dir": archive_dir},
        engine={
            "engine": engine,
            "model_path": model_path,
            "model_name": model_name,
            "model_alias": model_alias,
            "threads": threads,
            "processors": processors,
            "task": task,
            "audio_preprocessor": not no_audio_preprocessor,
        },
    )
    mode = OperatingMode(task)

    logger.info(
        "loading_engine",
        engine=engine,
        model_path=model_path,
        threads=threads,
        processors=processors,
    )
    try:
        loaded = load_engine(settings.engine)
    except (ConfigError, EngineError) as exc:
        logger.error("engine_load_failed", error=str(exc))
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    from hark.server.context import build_context

    context = build_context(settings, loaded, mode=mode, port=listen_port)
    logger.info(
        "server_starting",
        host=listen_host,
        port=listen_port,
        mode=mode.value,
        serving=mode.describe(),
        model_name=model_name,
        model_alias=model_alias,
        archive_dir=str(settings.server.archive_path),
        audio_preprocessor=settings.engine.audio_preprocessor,
        api_key_configured=settings.server.api_key is not None,
    )
    asyncio.run(_serve(context, listen_host, listen_port))


def _override_settings(
    base: HarkSettings,
    *,
    server: dict[str, object],
    engine: dict[str, object],
) -> HarkSettings:
    """Apply CLI values on top of env/.env settings."""
    return base.model_copy(
        update={
            "server": base.server.model_copy(update=server),
            "engine": base.engine.model_copy(update=engine),
        }
    )


async def _serve(context: GatewayContext, host: str, port: int) -> None:
    """Main async flow for serve."""
    import uvicorn

    from hark.server.app import create_app

    app = create_app(context)

    # Setup shutdown
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(s: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=s.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _handle_signal, sig)

    # Run uvicorn
    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)

    server_task = asyncio.create_task(server.serve())

    # Wait for shutdown signal or server to stop
    _done, _ = await asyncio.wait(
        [server_task, asyncio.create_task(shutdown_event.wait())],
        return_when=asyncio.FIRST_COMPLETED,
    )

    # Graceful shutdown: in-flight compute runs to completion
    if not server_task.done():
        server.should_exit = True
        await server_task

    logger.info("server_stopped")
