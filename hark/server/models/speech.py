"""Pydantic model for the speech endpoint POST /v1/audio/speech."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

SPEECH_MAX_TEXT_LENGTH = 4096


class SpeechRequest(BaseModel):
    """Request body for POST /v1/audio/speech.

    Compatible with the OpenAI Audio API contract. The synthesized audio is
    archived and the response is the resulting file object.
    """

    model: str = Field(max_length=256, description="Speech model name.")
    input: str = Field(
        min_length=1, max_length=SPEECH_MAX_TEXT_LENGTH, description="Text to be synthesized."
    )
    voice: str | None = Field(default=None, description="Voice identifier.")
    response_format: Literal["wav"] = Field(default="wav", description="Output audio format.")
    speed: float = Field(default=1.0, ge=0.25, le=4.0, description="Synthesis speed (0.25-4.0).")

    def engine_options(self) -> dict[str, object]:
        options: dict[str, object] = {"task": "speech", "speed": self.speed}
        if self.voice:
            options["voice"] = self.voice
        return options
