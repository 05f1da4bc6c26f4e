"""Audio decoding and encoding functions.

Converts between audio files and numpy float32 arrays.
"""

from __future__ import annotations

import io
import wave
from typing import TYPE_CHECKING

import numpy as np
import soundfile as sf

from hark._audio_constants import CANONICAL_SUBTYPE, PCM_INT16_SCALE
from hark.exceptions import AudioConversionError
from hark.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

logger = get_logger("preprocessing.audio_io")


def decode_audio(audio_bytes: bytes, filename: str = "<upload>") -> tuple[np.ndarray, int]:
    """Decode audio bytes to numpy float32 mono array.

    Supports WAV, FLAC, OGG, MP3 and other formats via libsndfile.
    Multi-channel audio is downmixed to mono by averaging channels.

    Args:
        audio_bytes: Audio file bytes.
        filename: Name used in error messages.

    Returns:
        Tuple (float32 mono array, sample rate in Hz).

    Raises:
        AudioConversionError: If the format is unsupported or bytes are invalid.
    """
    if not audio_bytes:
        raise AudioConversionError(filename, "empty audio (0 bytes)")

    try:
        data, sample_rate = sf.read(io.BytesIO(audio_bytes), dtype="float32", always_2d=False)
    except Exception:
        # Fallback to wave stdlib (plain WAV PCM without complex headers)
        try:
            data, sample_rate = _decode_wav_stdlib(audio_bytes)
        except (wave.Error, EOFError, ValueError) as wav_err:
            raise AudioConversionError(filename, f"could not decode audio: {wav_err}") from wav_err

    if data.ndim > 1:
        data = np.mean(data, axis=1)

    data = data.astype(np.float32)

    if data.size == 0:
        raise AudioConversionError(filename, "audio has no frames")

    logger.debug(
        "audio_decoded",
        filename=filename,
        samples=len(data),
        sample_rate=sample_rate,
        duration_s=round(len(data) / sample_rate, 3),
    )

    return data, int(sample_rate)


def _decode_wav_stdlib(audio_bytes: bytes) -> tuple[np.ndarray, int]:
    """Decode 16-bit WAV PCM using wave stdlib as fallback."""
    with wave.open(io.BytesIO(audio_bytes), "rb") as wf:
        n_channels = wf.getnchannels()
        sampwidth = wf.getsampwidth()
        sample_rate = wf.getframerate()
        raw_data = wf.readframes(wf.getnframes())

    if sampwidth != 2:
        msg = f"sample width {sampwidth} bytes not supported (expected 2)"
        raise ValueError(msg)

    data = np.frombuffer(raw_data, dtype=np.int16).astype(np.float32) / PCM_INT16_SCALE
    if n_channels > 1:
        data = data.reshape(-1, n_channels)
    return data, sample_rate


def write_pcm16_wav(path: Path, audio: np.ndarray, sample_rate: int) -> None:
    """Write a mono float32 array as a PCM 16-bit WAV file."""
    audio_clamped = np.clip(audio, -1.0, 1.0)
    sf.write(str(path), audio_clamped, sample_rate, subtype=CANONICAL_SUBTYPE, format="WAV")


def check_canonical(path: Path, sample_rate: int) -> None:
    """Verify that ``path`` is a mono WAV at ``sample_rate``.

    Raises:
        AudioConversionError: If the header cannot be read or does not match.
    """
    try:
        info = sf.info(str(path))
    except Exception as exc:
        raise AudioConversionError(path.name, f"unreadable audio header: {exc}") from exc

    if info.format != "WAV":
        raise AudioConversionError(path.name, f"expected a WAV container, got {info.format}")
    if info.channels != 1:
        raise AudioConversionError(
            path.name, f"the audio must be single-channel, got {info.channels} channels"
        )
    if info.samplerate != sample_rate:
        raise AudioConversionError(
            path.name,
            f"the audio sample rate must be {sample_rate} Hz, got {info.samplerate} Hz",
        )


def load_waveform(path: Path, sample_rate: int) -> np.ndarray:
    """Load a canonical WAV into a float32 array in [-1, 1].

    The mono/sample-rate invariant is checked again here, right before the
    samples are handed to the engine.

    Raises:
        AudioConversionError: If the file is missing, unreadable, or not canonical.
    """
    check_canonical(path, sample_rate)
    try:
        data, _ = sf.read(str(path), dtype="float32", always_2d=False)
    except Exception as exc:
        raise AudioConversionError(path.name, f"failed to load audio file: {exc}") from exc
    return np.ascontiguousarray(data, dtype=np.float32)
