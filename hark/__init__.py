"""Hark: speech gateway with an OpenAI-compatible audio API."""

__version__ = "0.3.0"
