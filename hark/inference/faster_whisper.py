"""Compute engine backed by Faster-Whisper (CTranslate2).

Adapts faster-whisper to the tensor-style ``ComputeEngine`` contract.
Faster-whisper is an optional dependency, so the import is guarded.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import numpy as np

from hark._types import Task, TensorType
from hark.exceptions import EngineComputeError, EngineInputError, EngineLoadError
from hark.inference.interface import (
    AUDIO_INPUT_INDEX,
    OPTIONS_INPUT_INDEX,
    OUTPUT_INDEX,
    ComputeEngine,
    copy_output,
)
from hark.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

try:
    from faster_whisper import WhisperModel
except ImportError:
    WhisperModel = None

logger = get_logger("inference.faster_whisper")


class FasterWhisperEngine(ComputeEngine):
    """Whisper speech recognition and translation to English.

    Options understood on input index 1 (all optional):
    ``task`` ("transcribe" | "translate"), ``language`` (ISO code or "auto"),
    ``prompt``, ``temperature``, ``offset_time`` and ``duration`` (ms),
    ``max_context`` (0 disables conditioning on previous text), ``max_len``
    (maximum characters per output line, 0 = unlimited) and
    ``split_on_word`` (break lines only at word boundaries).
    """

    def __init__(
        self,
        model_path: str,
        *,
        threads: int = 4,
        processors: int = 1,
        sample_rate: int = 16000,
        device: str = "auto",
        compute_type: str = "auto",
        beam_size: int = 5,
    ) -> None:
        if WhisperModel is None:
            msg = "faster-whisper is not installed. Install with: pip install hark-gateway[faster-whisper]"
            raise EngineLoadError(msg)

        try:
            self._model = WhisperModel(
                model_path,
                device=device,
                compute_type=compute_type,
                cpu_threads=threads,
                num_workers=processors,
            )
        except Exception as exc:
            raise EngineLoadError(f"{model_path}: {exc}") from exc

        self._sample_rate = sample_rate
        self._beam_size = beam_size
        self._audio: np.ndarray | None = None
        self._options: dict[str, Any] = {}
        self._output = b""

        logger.info(
            "model_loaded",
            model_path=model_path,
            device=device,
            compute_type=compute_type,
            threads=threads,
            processors=processors,
        )

    @property
    def capabilities(self) -> frozenset[Task]:
        return frozenset({Task.TRANSCRIBE, Task.TRANSLATE})

    def init_execution_context(self) -> None:
        self._audio = None
        self._options = {}
        self._output = b""

    def set_input(
        self,
        index: int,
        tensor_type: TensorType,
        dims: Sequence[int],
        data: Any,
    ) -> None:
        if index == AUDIO_INPUT_INDEX:
            if tensor_type is not TensorType.F32:
                raise EngineInputError(f"audio input must be F32, got {tensor_type.value}")
            audio = np.asarray(data, dtype=np.float32).reshape(-1)
            if audio.size != int(np.prod(dims)):
                raise EngineInputError(f"dims {list(dims)} do not match {audio.size} samples")
            self._audio = audio
        elif index == OPTIONS_INPUT_INDEX:
            try:
                self._options = json.loads(bytes(data).decode("utf-8"))
            except (UnicodeDecodeError, ValueError) as exc:
                raise EngineInputError(f"invalid options payload: {exc}") from exc
        else:
            raise EngineInputError(f"unknown input index {index}")

    def compute(self) -> None:
        if self._audio is None:
            raise EngineComputeError("no audio input was set")

        opts = self._options
        audio = self._clip(self._audio, opts.get("offset_time", 0), opts.get("duration", 0))
        if audio.size == 0:
            raise EngineComputeError("the requested offset/duration selects no audio")

        language = opts.get("language") or None
        if language == "auto":
            language = None
        max_len = int(opts.get("max_len", 0) or 0)

        segments_iter, info = self._model.transcribe(
            audio,
            task=opts.get("task", "transcribe"),
            language=language,
            initial_prompt=opts.get("prompt") or None,
            temperature=float(opts.get("temperature", 0.0)),
            condition_on_previous_text=int(opts.get("max_context", -1)) != 0,
            word_timestamps=max_len > 0 and bool(opts.get("split_on_word", False)),
            beam_size=self._beam_size,
            vad_filter=False,
        )
        segments = list(segments_iter)

        if max_len > 0:
            text = "\n".join(_wrap_segments(segments, max_len, bool(opts.get("split_on_word"))))
        else:
            text = " ".join(seg.text.strip() for seg in segments).strip()

        logger.debug(
            "transcribed",
            language=info.language,
            duration_s=round(info.duration, 3),
            segments=len(segments),
        )
        self._output = text.encode("utf-8")

    def get_output(self, index: int, buffer: bytearray) -> int:
        if index != OUTPUT_INDEX:
            msg = f"unknown output index {index}"
            raise ValueError(msg)
        return copy_output(self._output, buffer)

    def _clip(self, audio: np.ndarray, offset_ms: int, duration_ms: int) -> np.ndarray:
        start = int(offset_ms) * self._sample_rate // 1000
        if duration_ms:
            end = start + int(duration_ms) * self._sample_rate // 1000
            return audio[start:end]
        return audio[start:]


def _wrap_segments(segments: list[Any], max_len: int, split_on_word: bool) -> list[str]:
    """Break segment text into lines of at most ``max_len`` characters."""
    lines: list[str] = []
    for seg in segments:
        if split_on_word and getattr(seg, "words", None):
            tokens = [w.word.strip() for w in seg.words if w.word.strip()]
        elif split_on_word:
            tokens = seg.text.split()
        else:
            text = seg.text.strip()
            lines.extend(text[i : i + max_len] for i in range(0, len(text), max_len))
            continue

        current = ""
        for token in tokens:
            candidate = f"{current} {token}" if current else token
            if current and len(candidate) > max_len:
                lines.append(current)
                current = token
            else:
                current = candidate
        if current:
            lines.append(current)
    return lines
