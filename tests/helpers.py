"""Shared test helpers: audio payloads, multipart bodies, fake engines.

Usage:
    from tests.helpers import (
        RecordingEngine,
        encode_multipart,
        make_context,
        make_wav_bytes,
    )
"""

from __future__ import annotations

import io
import json
import threading
import time
from typing import TYPE_CHECKING, Any

import numpy as np
import soundfile as sf

from hark._types import OperatingMode, Task, TensorType
from hark.archive.store import FileSystemArchive
from hark.inference.interface import (
    AUDIO_INPUT_INDEX,
    OPTIONS_INPUT_INDEX,
    ComputeEngine,
    copy_output,
)
from hark.inference.invoker import InferenceInvoker
from hark.preprocessing.converter import SoundfileConverter
from hark.server.context import GatewayContext, build_server_info
from hark.server.task_gate import TaskGate

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from hark.preprocessing.converter import AudioConverter

SAMPLE_RATE = 16000
BOUNDARY = "hark-test-boundary"


def make_wav_bytes(
    duration_s: float = 0.25,
    sample_rate: int = SAMPLE_RATE,
    channels: int = 1,
    frequency: float = 440.0,
) -> bytes:
    """Generate a PCM16 WAV tone."""
    t = np.arange(int(duration_s * sample_rate)) / sample_rate
    tone = (0.3 * np.sin(2 * np.pi * frequency * t)).astype(np.float32)
    data = np.stack([tone] * channels, axis=1) if channels > 1 else tone
    buf = io.BytesIO()
    sf.write(buf, data, sample_rate, subtype="PCM_16", format="WAV")
    return buf.getvalue()


def encode_multipart(
    parts: Sequence[tuple[str, bytes | str, str | None, str | None]],
    boundary: str = BOUNDARY,
) -> tuple[bytes, str]:
    """Build a multipart/form-data body with parts in exactly the given order.

    Each part is ``(name, value, filename, content_type)``.

    Returns:
        (body, content-type header value)
    """
    chunks: list[bytes] = []
    for name, value, filename, content_type in parts:
        disposition = f'form-data; name="{name}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        headers = f"Content-Disposition: {disposition}\r\n"
        if content_type is not None:
            headers += f"Content-Type: {content_type}\r\n"
        payload = value.encode("utf-8") if isinstance(value, str) else value
        chunks.append(f"--{boundary}\r\n{headers}\r\n".encode() + payload + b"\r\n")
    chunks.append(f"--{boundary}--\r\n".encode())
    return b"".join(chunks), f"multipart/form-data; boundary={boundary}"


def file_part(
    data: bytes, filename: str = "audio.wav", content_type: str = "audio/wav"
) -> tuple[str, bytes, str, str]:
    return ("file", data, filename, content_type)


def text_part(name: str, value: str) -> tuple[str, str, None, None]:
    return (name, value, None, None)


class RecordingEngine(ComputeEngine):
    """Compute engine double that records the order of every call.

    The output is ``text`` followed by the request ``prompt`` (when one was
    sent), so concurrent callers can check they got their own result.
    """

    def __init__(
        self,
        text: str = "hello world",
        *,
        capabilities: frozenset[Task] = frozenset({Task.TRANSCRIBE, Task.TRANSLATE}),
        compute_delay: float = 0.0,
        output: bytes | None = None,
        reported_size: int | None = None,
        fail_on: str | None = None,
    ) -> None:
        self.text = text
        self._capabilities = capabilities
        self.compute_delay = compute_delay
        self.output = output
        self.reported_size = reported_size
        self.fail_on = fail_on

        self.calls: list[str] = []
        self.options: list[dict[str, Any]] = []
        self.audio_inputs: list[Any] = []
        self.max_in_flight = 0
        self._in_flight = 0
        self._counter_lock = threading.Lock()
        self._pending_options: dict[str, Any] = {}
        self._result = b""

    @property
    def capabilities(self) -> frozenset[Task]:
        return self._capabilities

    def init_execution_context(self) -> None:
        self._maybe_fail("init_context")
        self.calls.append("init_context")
        self._pending_options = {}
        self._result = b""

    def set_input(
        self,
        index: int,
        tensor_type: TensorType,
        dims: Sequence[int],
        data: Any,
    ) -> None:
        self._maybe_fail("set_input")
        if index == AUDIO_INPUT_INDEX:
            with self._counter_lock:
                self._in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self._in_flight)
            self.audio_inputs.append((tensor_type, list(dims), data))
        elif index == OPTIONS_INPUT_INDEX:
            self._pending_options = json.loads(bytes(data).decode("utf-8"))
            self.options.append(self._pending_options)
        self.calls.append(f"set_input:{index}")

    def compute(self) -> None:
        self._maybe_fail("compute")
        self.calls.append("compute")
        if self.compute_delay:
            time.sleep(self.compute_delay)
        if self.output is not None:
            self._result = self.output
            return
        prompt = self._pending_options.get("prompt")
        text = f"{self.text} {prompt}" if prompt else self.text
        self._result = text.encode("utf-8")

    def get_output(self, index: int, buffer: bytearray) -> int:
        self._maybe_fail("get_output")
        self.calls.append("get_output")
        with self._counter_lock:
            self._in_flight -= 1
        if self.reported_size is not None:
            return self.reported_size
        return copy_output(self._result, buffer)

    def _maybe_fail(self, stage: str) -> None:
        if self.fail_on == stage:
            msg = f"simulated {stage} failure"
            raise RuntimeError(msg)


class SpeechEngine(RecordingEngine):
    """Engine double that also synthesizes speech (returns a WAV payload)."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(
            capabilities=frozenset({Task.TRANSCRIBE, Task.TRANSLATE, Task.SPEECH}),
            output=make_wav_bytes(0.1),
            **kwargs,
        )


def make_context(
    tmp_path: Path,
    *,
    engine: ComputeEngine | None = None,
    mode: OperatingMode | None = OperatingMode.FULL,
    api_key: str | None = None,
    converter: AudioConverter | None = None,
    allowed_extensions: tuple[str, ...] = ("wav", "mp3", "flac", "ogg"),
    max_file_size_bytes: int = 5 * 1024 * 1024,
    max_output_bytes: int = 4096,
) -> GatewayContext:
    """Build a GatewayContext backed by ``tmp_path``.

    ``mode=None`` leaves the task gate uncommitted.
    """
    return GatewayContext(
        gate=TaskGate(mode),
        invoker=InferenceInvoker(engine or RecordingEngine(), max_output_bytes=max_output_bytes),
        archive=FileSystemArchive(tmp_path / "archives"),
        converter=converter or SoundfileConverter(),
        server_info=build_server_info(mode or OperatingMode.FULL, "whisper-tiny", 8080),
        sample_rate=SAMPLE_RATE,
        allowed_extensions=allowed_extensions,
        max_file_size_bytes=max_file_size_bytes,
        api_key=api_key,
    )


class AsyncIterFromList:
    """Async iterator that yields items from a list.

    Stands in for ``request.stream()`` when feeding body chunks directly.
    """

    def __init__(self, items: list[Any]) -> None:
        self._items = list(items)
        self._index = 0

    def __aiter__(self) -> AsyncIterFromList:
        return self

    async def __anext__(self) -> Any:
        if self._index >= len(self._items):
            raise StopAsyncIteration
        item = self._items[self._index]
        self._index += 1
        return item


def chunked(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]
