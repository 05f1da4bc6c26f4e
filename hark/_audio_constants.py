"""Centralized audio format constants for the Hark gateway."""

from __future__ import annotations

# --- PCM 16-bit format ---
# int16 / 32768.0 maps to [-1.0, ~0.99997].
PCM_INT16_SCALE: float = 32768.0

# Whisper-family engines expect 16kHz mono input.
ENGINE_SAMPLE_RATE: int = 16000

# Canonical container written by the normalizer.
CANONICAL_EXTENSION: str = "wav"
CANONICAL_SUBTYPE: str = "PCM_16"

# Extensions accepted by default (soundfile/libsndfile can decode all of them).
DEFAULT_ALLOWED_EXTENSIONS: str = "wav,mp3,flac,ogg"
