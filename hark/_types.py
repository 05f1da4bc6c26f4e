"""Core types for Hark.

Enums and small value types shared by the server, the inference layer, and
the CLI.
"""

from __future__ import annotations

from enum import Enum


class Task(Enum):
    """Speech task selected by the request path."""

    TRANSCRIBE = "transcribe"
    TRANSLATE = "translate"
    SPEECH = "speech"


class OperatingMode(Enum):
    """Tasks the server accepts, fixed at startup by ``--task``.

    The values are the CLI spellings.
    """

    TRANSCRIBE = "transcribe"
    TRANSLATE = "translate"
    FULL = "full"

    @property
    def tasks(self) -> frozenset[Task]:
        """Audio tasks enabled by this mode."""
        if self is OperatingMode.TRANSCRIBE:
            return frozenset({Task.TRANSCRIBE})
        if self is OperatingMode.TRANSLATE:
            return frozenset({Task.TRANSLATE})
        return frozenset({Task.TRANSCRIBE, Task.TRANSLATE})

    def describe(self) -> str:
        if self is OperatingMode.TRANSCRIBE:
            return "transcriptions"
        if self is OperatingMode.TRANSLATE:
            return "translations"
        return "transcriptions and translations"


class ResponseFormat(Enum):
    """Response format for the transcription API."""

    JSON = "json"
    VERBOSE_JSON = "verbose_json"
    TEXT = "text"


class TensorType(Enum):
    """Element type of an engine input tensor."""

    F32 = "f32"
    U8 = "u8"
    I32 = "i32"
