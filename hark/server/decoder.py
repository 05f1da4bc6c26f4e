"""Typed decoding of transcription/translation multipart bodies.

Field names are dispatched through the closed ``FormField`` enum; anything
outside it rejects the whole request. The ``file`` field is persisted to
the archive the moment it has been read, so later fields are decoded with
the upload already on disk. If decoding fails after that point the upload
is removed again.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from hark._types import ResponseFormat, Task
from hark.exceptions import (
    ArchiveError,
    AudioFormatError,
    FieldParseError,
    FieldTypeError,
    InvalidFieldError,
    InvalidRequestError,
    MissingFieldError,
    MissingFilenameError,
    UnsupportedFileTypeError,
)
from hark.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from hark.archive.models import UploadedFile
    from hark.archive.store import FileArchive
    from hark.server.multipart import MultipartField

logger = get_logger("server.decoder")

MAX_MODEL_NAME_LENGTH = 256

_UINT = re.compile(r"^[0-9]+$")
_INT = re.compile(r"^-?[0-9]+$")


class FormField(Enum):
    """Recognized multipart field names."""

    FILE = "file"
    MODEL = "model"
    LANGUAGE = "language"
    PROMPT = "prompt"
    TEMPERATURE = "temperature"
    RESPONSE_FORMAT = "response_format"
    DETECT_LANGUAGE = "detect_language"
    OFFSET_TIME = "offset_time"
    DURATION = "duration"
    MAX_CONTEXT = "max_context"
    MAX_LEN = "max_len"
    SPLIT_ON_WORD = "split_on_word"
    USE_NEW_CONTEXT = "use_new_context"

    @classmethod
    def from_name(cls, name: str) -> FormField:
        """Map a field name to its variant.

        Raises:
            InvalidFieldError: The name is not recognized.
        """
        try:
            return cls(name)
        except ValueError:
            raise InvalidFieldError(name) from None


@dataclass
class AudioTaskRequest:
    """A decoded transcription or translation request."""

    task: Task
    file: UploadedFile | None = None
    model: str | None = None
    language: str | None = None
    prompt: str | None = None
    temperature: float = 0.0
    response_format: ResponseFormat = ResponseFormat.JSON
    offset_time: int = 0
    duration: int = 0
    max_context: int = -1
    max_len: int = 0
    split_on_word: bool = False
    detect_language: bool = False
    use_new_context: bool = False

    def engine_options(self) -> dict[str, Any]:
        """Per-request options bound to the engine's options input."""
        options: dict[str, Any] = {
            "task": self.task.value,
            "temperature": self.temperature,
            "offset_time": self.offset_time,
            "duration": self.duration,
            "max_context": self.max_context,
            "max_len": self.max_len,
            "split_on_word": self.split_on_word,
        }
        if self.language:
            options["language"] = self.language
        if self.prompt:
            options["prompt"] = self.prompt
        return options


# --- field parsers ---


def _text(field: MultipartField, form_field: FormField) -> str:
    if not field.is_text:
        raise FieldTypeError(form_field.value)
    try:
        return field.text()
    except UnicodeDecodeError:
        raise FieldTypeError(form_field.value) from None


def parse_bool(form_field: FormField, raw: str) -> bool:
    value = raw.strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    raise FieldParseError(form_field.value, raw, "a boolean (true or false)")


def parse_uint(form_field: FormField, raw: str) -> int:
    value = raw.strip()
    if not _UINT.match(value):
        raise FieldParseError(form_field.value, raw, "an unsigned integer")
    return int(value)


def parse_int(form_field: FormField, raw: str) -> int:
    value = raw.strip()
    if not _INT.match(value):
        raise FieldParseError(form_field.value, raw, "an integer")
    return int(value)


def parse_temperature(raw: str) -> float:
    try:
        value = float(raw.strip())
    except ValueError:
        raise FieldParseError(FormField.TEMPERATURE.value, raw, "a number") from None
    if not 0.0 <= value <= 1.0:
        raise FieldParseError(FormField.TEMPERATURE.value, raw, "between 0 and 1")
    return value


def parse_response_format(raw: str) -> ResponseFormat:
    try:
        return ResponseFormat(raw.strip())
    except ValueError:
        valid = ", ".join(f.value for f in ResponseFormat)
        raise FieldParseError(
            FormField.RESPONSE_FORMAT.value, raw, f"one of: {valid}"
        ) from None


def parse_model(raw: str) -> str:
    value = raw.strip()
    if len(value) > MAX_MODEL_NAME_LENGTH:
        raise FieldParseError(
            FormField.MODEL.value,
            value[:32] + "...",
            f"a model name of at most {MAX_MODEL_NAME_LENGTH} characters",
        )
    return value


def file_extension(filename: str) -> str:
    return PurePosixPath(filename.replace("\\", "/")).suffix.lower().lstrip(".")


class AudioRequestDecoder:
    """Decodes one multipart body into an ``AudioTaskRequest``.

    Args:
        archive: Where the ``file`` field is persisted.
        allowed_extensions: Accepted upload extensions, lowercase, no dot.
    """

    def __init__(self, archive: FileArchive, allowed_extensions: tuple[str, ...]) -> None:
        self._archive = archive
        self._allowed_extensions = allowed_extensions

    async def decode(
        self,
        fields: AsyncIterator[MultipartField],
        task: Task,
    ) -> AudioTaskRequest:
        """Decode every field in body order.

        Raises:
            InvalidRequestError: Unknown field, missing or duplicate file,
                non-text field, or a value that fails to parse.
            AudioTooLargeError: Raised by the reader while streaming.
            ArchiveError: The upload could not be persisted.
        """
        request = AudioTaskRequest(task=task)
        try:
            async for field in fields:
                await self._apply(request, field)
            if request.file is None:
                raise MissingFieldError(FormField.FILE.value)
        except Exception:
            if request.file is not None:
                await self._rollback(request.file)
            raise

        # Applied last so it wins over an explicit language in any field order.
        if request.detect_language:
            request.language = "auto"
        return request

    async def _apply(self, request: AudioTaskRequest, field: MultipartField) -> None:
        form_field = FormField.from_name(field.name)

        if form_field is FormField.FILE:
            if request.file is not None:
                raise InvalidRequestError("Only one 'file' field is allowed per request.")
            request.file = await self._persist(field)
            return

        raw = _text(field, form_field)
        if form_field is FormField.MODEL:
            request.model = parse_model(raw)
        elif form_field is FormField.LANGUAGE:
            request.language = raw.strip() or None
        elif form_field is FormField.PROMPT:
            request.prompt = raw
        elif form_field is FormField.TEMPERATURE:
            request.temperature = parse_temperature(raw)
        elif form_field is FormField.RESPONSE_FORMAT:
            request.response_format = parse_response_format(raw)
        elif form_field is FormField.DETECT_LANGUAGE:
            request.detect_language = parse_bool(form_field, raw)
        elif form_field is FormField.OFFSET_TIME:
            request.offset_time = parse_uint(form_field, raw)
        elif form_field is FormField.DURATION:
            request.duration = parse_uint(form_field, raw)
        elif form_field is FormField.MAX_CONTEXT:
            request.max_context = parse_int(form_field, raw)
        elif form_field is FormField.MAX_LEN:
            request.max_len = parse_uint(form_field, raw)
        elif form_field is FormField.SPLIT_ON_WORD:
            request.split_on_word = parse_bool(form_field, raw)
        elif form_field is FormField.USE_NEW_CONTEXT:
            request.use_new_context = parse_bool(form_field, raw)

    async def _persist(self, field: MultipartField) -> UploadedFile:
        if not field.filename:
            raise MissingFilenameError
        if file_extension(field.filename) not in self._allowed_extensions:
            raise UnsupportedFileTypeError(field.filename, self._allowed_extensions)
        if not field.data:
            raise AudioFormatError("the uploaded file is empty")

        uploaded = await self._archive.create(field.data, field.filename)
        logger.info(
            "upload_persisted",
            file_id=uploaded.id,
            filename=uploaded.filename,
            bytes=uploaded.bytes,
        )
        return uploaded

    async def _rollback(self, uploaded: UploadedFile) -> None:
        # The decode error is what the client sees; a failed cleanup is only logged.
        try:
            result = await self._archive.delete(uploaded.id)
        except ArchiveError as exc:
            logger.error("upload_rollback_failed", file_id=uploaded.id, error=str(exc))
            return
        logger.info("upload_rolled_back", file_id=uploaded.id, deleted=result.deleted)
