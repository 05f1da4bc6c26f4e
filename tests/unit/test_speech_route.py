"""Tests for POST /v1/audio/speech."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from hark.server.app import create_app
from tests.helpers import SpeechEngine, make_context

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from hark.server.context import GatewayContext


@pytest.fixture
def speech_engine() -> SpeechEngine:
    return SpeechEngine()


@pytest.fixture
def speech_context(tmp_path: Path, speech_engine: SpeechEngine) -> GatewayContext:
    return make_context(tmp_path, engine=speech_engine, max_output_bytes=64 * 1024)


@pytest.fixture
async def speech_client(speech_context: GatewayContext) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=create_app(speech_context)),
        base_url="http://test",
    ) as c:
        yield c


async def test_synthesized_audio_is_archived(
    speech_client: httpx.AsyncClient,
    speech_context: GatewayContext,
    speech_engine: SpeechEngine,
) -> None:
    response = await speech_client.post(
        "/v1/audio/speech",
        json={"model": "tts-1", "input": "Hello there", "voice": "amy", "speed": 1.5},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["object"] == "file"
    assert body["filename"] == "output.wav"
    assert body["bytes"] == len(speech_engine.output)
    assert [f.id for f in await speech_context.archive.list_files()] == [body["id"]]
    assert speech_engine.options[0] == {"task": "speech", "speed": 1.5, "voice": "amy"}
    path = speech_context.archive.path_of(body["id"], "output.wav")
    assert path.read_bytes() == speech_engine.output


async def test_engine_without_speech(client: httpx.AsyncClient, context: GatewayContext) -> None:
    response = await client.post("/v1/audio/speech", json={"model": "tts-1", "input": "Hi"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "task_not_enabled"
    assert await context.archive.list_files() == []


@pytest.mark.parametrize(
    "payload",
    [
        {"model": "tts-1"},
        {"model": "tts-1", "input": ""},
        {"model": "tts-1", "input": "x" * 5000},
        {"model": "tts-1", "input": "hi", "speed": 10},
        {"model": "tts-1", "input": "hi", "response_format": "mp3"},
    ],
)
async def test_invalid_body(speech_client: httpx.AsyncClient, payload: dict[str, object]) -> None:
    response = await speech_client.post("/v1/audio/speech", json=payload)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["type"] == "invalid_request_error"
    assert error["message"].startswith("Invalid request:")


async def test_preflight(client: httpx.AsyncClient) -> None:
    response = await client.options("/v1/audio/speech")

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["access-control-allow-methods"] == "*"


async def test_uncommitted_mode_fails_closed(tmp_path: Path) -> None:
    engine = SpeechEngine()
    context = make_context(tmp_path, engine=engine, mode=None)

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=create_app(context)),
        base_url="http://test",
    ) as client:
        response = await client.post("/v1/audio/speech", json={"model": "tts-1", "input": "Hi"})

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "service_unavailable"
    assert engine.calls == []
    assert await context.archive.list_files() == []
