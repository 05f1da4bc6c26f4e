"""Hark CLI.

Registers every command on the main group.
"""

from hark.cli.info import info
from hark.cli.main import cli
from hark.cli.serve import serve

__all__ = [
    "cli",
    "info",
    "serve",
]
