"""Shared fixtures for all tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

# Ensure repo root is on sys.path so tests can import the `hark` package
# when running pytest from the repository root without an editable install.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import httpx  # noqa: E402
import pytest  # noqa: E402

from hark.server.app import create_app  # noqa: E402
from tests.helpers import RecordingEngine, make_context, make_wav_bytes  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

    from hark.server.context import GatewayContext


@pytest.fixture
def wav_16khz() -> bytes:
    """PCM 16-bit, 16kHz, mono WAV payload."""
    return make_wav_bytes(0.25, 16000)


@pytest.fixture
def wav_44khz_stereo() -> bytes:
    """PCM 16-bit, 44.1kHz, stereo WAV payload."""
    return make_wav_bytes(0.25, 44100, channels=2)


@pytest.fixture
def engine() -> RecordingEngine:
    return RecordingEngine()


@pytest.fixture
def context(tmp_path: Path, engine: RecordingEngine) -> GatewayContext:
    return make_context(tmp_path, engine=engine)


@pytest.fixture
def app(context: GatewayContext) -> FastAPI:
    return create_app(context)


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c
