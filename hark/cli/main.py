"""Main CLI command group for Hark."""

from __future__ import annotations

import click

import hark


@click.group()
@click.version_option(version=hark.__version__, prog_name="hark")
def cli() -> None:
    """Hark: speech-to-text gateway with an OpenAI-compatible audio API."""
