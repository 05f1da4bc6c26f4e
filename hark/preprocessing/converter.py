"""Upload normalizer: raw upload -> canonical mono PCM WAV.

The canonical file is written next to the upload, with the same stem and a
``.wav`` extension. When the upload is itself ``<stem>.wav`` the canonical
audio replaces it atomically.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from hark._audio_constants import CANONICAL_EXTENSION
from hark.exceptions import AudioConversionError
from hark.logging import get_logger
from hark.preprocessing.audio_io import check_canonical, decode_audio, write_pcm16_wav
from hark.preprocessing.resample import resample

if TYPE_CHECKING:
    from hark.archive.models import UploadedFile
    from hark.archive.store import FileArchive

logger = get_logger("preprocessing.converter")


def derived_path(source: Path) -> Path:
    """Deterministic location of the canonical audio for ``source``."""
    return source.with_name(f"{source.stem}.{CANONICAL_EXTENSION}")


class AudioConverter(ABC):
    """Converts an archived upload into the canonical engine format."""

    @abstractmethod
    def convert(self, source: Path, target_sample_rate: int) -> Path:
        """Write canonical audio for ``source`` and return where it was written.

        Raises:
            AudioConversionError: If the upload cannot be converted, or the
                result is not mono at ``target_sample_rate``.
        """
        ...


class SoundfileConverter(AudioConverter):
    """Decode with libsndfile, downmix, resample, and re-encode as PCM16 WAV."""

    def convert(self, source: Path, target_sample_rate: int) -> Path:
        try:
            audio_bytes = source.read_bytes()
        except OSError as exc:
            raise AudioConversionError(source.name, f"failed to read upload: {exc}") from exc

        audio, sample_rate = decode_audio(audio_bytes, filename=source.name)
        audio = resample(audio, sample_rate, target_sample_rate)
        sample_rate = target_sample_rate

        target = derived_path(source)
        fd, tmp_name = tempfile.mkstemp(
            prefix=".canonical-", suffix=f".{CANONICAL_EXTENSION}", dir=target.parent
        )
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            write_pcm16_wav(tmp_path, audio, sample_rate)
            check_canonical(tmp_path, target_sample_rate)
            os.replace(tmp_path, target)
        except AudioConversionError:
            tmp_path.unlink(missing_ok=True)
            raise
        except Exception as exc:
            tmp_path.unlink(missing_ok=True)
            raise AudioConversionError(source.name, f"failed to write canonical audio: {exc}") from exc

        logger.debug(
            "audio_converted",
            source=source.name,
            target=target.name,
            sample_rate=sample_rate,
            samples=len(audio),
        )
        return target


class PassthroughConverter(AudioConverter):
    """Used when the audio preprocessor is disabled.

    Nothing is rewritten; the upload must already be canonical.
    """

    def convert(self, source: Path, target_sample_rate: int) -> Path:
        check_canonical(source, target_sample_rate)
        return source


async def normalize_upload(
    uploaded: UploadedFile,
    archive: FileArchive,
    converter: AudioConverter,
    target_sample_rate: int,
) -> UploadedFile:
    """Normalize an archived upload and return the request's copy of its metadata.

    The returned copy carries the canonical filename; the archive keeps the
    record it created.
    """
    source = archive.path_of(uploaded.id, uploaded.filename)
    target = await asyncio.to_thread(converter.convert, source, target_sample_rate)
    return uploaded.model_copy(update={"filename": target.name})
