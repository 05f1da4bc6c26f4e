"""Tests for the faster-whisper adapter, with the model replaced by a fake."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pytest

from hark._types import Task, TensorType
from hark.exceptions import EngineComputeError, EngineInputError, EngineLoadError
from hark.inference import faster_whisper
from hark.inference.faster_whisper import FasterWhisperEngine, _wrap_segments


@dataclass
class FakeWord:
    word: str


@dataclass
class FakeSegment:
    text: str
    words: list[FakeWord] = field(default_factory=list)


@dataclass
class FakeInfo:
    language: str = "en"
    duration: float = 1.0


class FakeWhisperModel:
    instances: list[FakeWhisperModel] = []

    def __init__(self, model_path: str, **kwargs: Any) -> None:
        self.model_path = model_path
        self.kwargs = kwargs
        self.calls: list[tuple[np.ndarray, dict[str, Any]]] = []
        self.segments = [FakeSegment(" Hello there."), FakeSegment(" General Kenobi.")]
        FakeWhisperModel.instances.append(self)

    def transcribe(self, audio: np.ndarray, **kwargs: Any) -> tuple[Any, FakeInfo]:
        self.calls.append((audio, kwargs))
        return iter(self.segments), FakeInfo()


@pytest.fixture
def model_cls(monkeypatch: pytest.MonkeyPatch) -> type[FakeWhisperModel]:
    FakeWhisperModel.instances = []
    monkeypatch.setattr(faster_whisper, "WhisperModel", FakeWhisperModel)
    return FakeWhisperModel


def _run(engine: FasterWhisperEngine, audio: np.ndarray, options: dict[str, Any]) -> str:
    engine.set_input(0, TensorType.F32, [1, audio.size], audio)
    engine.set_input(1, TensorType.U8, [0], json.dumps(options).encode("utf-8"))
    engine.compute()
    buffer = bytearray(4096)
    size = engine.get_output(0, buffer)
    return bytes(buffer[:size]).decode("utf-8")


def test_missing_package(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(faster_whisper, "WhisperModel", None)

    with pytest.raises(EngineLoadError, match="not installed"):
        FasterWhisperEngine("/models/tiny")


def test_load_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    class Broken:
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            raise RuntimeError("no such model")

    monkeypatch.setattr(faster_whisper, "WhisperModel", Broken)

    with pytest.raises(EngineLoadError, match="no such model"):
        FasterWhisperEngine("/models/tiny")


def test_model_options(model_cls: type[FakeWhisperModel]) -> None:
    engine = FasterWhisperEngine("/models/tiny", threads=2, processors=3)

    model = model_cls.instances[0]
    assert model.kwargs["cpu_threads"] == 2
    assert model.kwargs["num_workers"] == 3
    assert engine.capabilities == frozenset({Task.TRANSCRIBE, Task.TRANSLATE})


def test_transcribe_joins_segments(model_cls: type[FakeWhisperModel]) -> None:
    engine = FasterWhisperEngine("/models/tiny")

    text = _run(
        engine,
        np.zeros(16000, dtype=np.float32),
        {"task": "translate", "language": "auto", "prompt": "Star Wars", "max_context": 0},
    )

    assert text == "Hello there. General Kenobi."
    _, kwargs = model_cls.instances[0].calls[0]
    assert kwargs["task"] == "translate"
    assert kwargs["language"] is None
    assert kwargs["initial_prompt"] == "Star Wars"
    assert kwargs["condition_on_previous_text"] is False


def test_offset_and_duration_clip_audio(model_cls: type[FakeWhisperModel]) -> None:
    engine = FasterWhisperEngine("/models/tiny", sample_rate=16000)

    _run(engine, np.zeros(32000, dtype=np.float32), {"offset_time": 500, "duration": 250})

    audio, _ = model_cls.instances[0].calls[0]
    assert audio.size == 4000


def test_clip_past_the_end(model_cls: type[FakeWhisperModel]) -> None:
    engine = FasterWhisperEngine("/models/tiny")

    with pytest.raises(EngineComputeError, match="selects no audio"):
        _run(engine, np.zeros(1600, dtype=np.float32), {"offset_time": 5000})


def test_compute_without_audio(model_cls: type[FakeWhisperModel]) -> None:
    engine = FasterWhisperEngine("/models/tiny")

    with pytest.raises(EngineComputeError, match="no audio"):
        engine.compute()


def test_reset_context_drops_inputs(model_cls: type[FakeWhisperModel]) -> None:
    engine = FasterWhisperEngine("/models/tiny")
    engine.set_input(0, TensorType.F32, [1, 10], np.zeros(10, dtype=np.float32))

    engine.init_execution_context()

    with pytest.raises(EngineComputeError):
        engine.compute()


class TestInputValidation:
    def test_audio_must_be_f32(self, model_cls: type[FakeWhisperModel]) -> None:
        engine = FasterWhisperEngine("/models/tiny")

        with pytest.raises(EngineInputError, match="F32"):
            engine.set_input(0, TensorType.U8, [3], b"abc")

    def test_dims_must_match(self, model_cls: type[FakeWhisperModel]) -> None:
        engine = FasterWhisperEngine("/models/tiny")

        with pytest.raises(EngineInputError, match="dims"):
            engine.set_input(0, TensorType.F32, [1, 20], np.zeros(10, dtype=np.float32))

    def test_options_must_be_json(self, model_cls: type[FakeWhisperModel]) -> None:
        engine = FasterWhisperEngine("/models/tiny")

        with pytest.raises(EngineInputError, match="options"):
            engine.set_input(1, TensorType.U8, [3], b"{no")

    def test_unknown_index(self, model_cls: type[FakeWhisperModel]) -> None:
        engine = FasterWhisperEngine("/models/tiny")

        with pytest.raises(EngineInputError, match="index 7"):
            engine.set_input(7, TensorType.U8, [1], b"x")


class TestWrapSegments:
    def test_character_wrap(self) -> None:
        assert _wrap_segments([FakeSegment(" abcdefgh")], 3, False) == ["abc", "def", "gh"]

    def test_word_wrap_uses_word_timestamps(self) -> None:
        segment = FakeSegment(
            " the quick brown fox",
            words=[FakeWord(" the"), FakeWord(" quick"), FakeWord(" brown"), FakeWord(" fox")],
        )

        assert _wrap_segments([segment], 10, True) == ["the quick", "brown fox"]

    def test_word_wrap_without_word_timestamps(self) -> None:
        assert _wrap_segments([FakeSegment("one two three")], 7, True) == ["one two", "three"]

    def test_long_word_stays_whole(self) -> None:
        assert _wrap_segments([FakeSegment("extraordinary")], 4, True) == ["extraordinary"]
