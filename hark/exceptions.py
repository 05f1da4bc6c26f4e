"""Typed exceptions for Hark.

Hierarchy:
    HarkError (base)
    +-- NotReadyError
    +-- ConfigError
    +-- UnauthorizedError
    +-- TaskNotEnabledError
    +-- InvalidRequestError
    |   +-- InvalidFieldError
    |   +-- MissingFieldError
    |   +-- MissingFilenameError
    |   +-- FieldTypeError
    |   +-- FieldParseError
    |   +-- UnsupportedFileTypeError
    +-- AudioError
    |   +-- AudioFormatError
    |   +-- AudioTooLargeError
    |   +-- AudioConversionError
    +-- ArchiveError
    |   +-- FileNotFoundInArchiveError
    +-- EngineError
    |   +-- EngineLoadError
    |   +-- EngineContextError
    |   +-- EngineInputError
    |   +-- EngineComputeError
    |   +-- EngineOutputError
    |   +-- OutputDecodeError
    +-- SerializationError

Client mistakes (``InvalidRequestError``, ``AudioFormatError``, ...) are kept
apart from server faults (``ArchiveError``, ``EngineError``) so the error
handlers can answer with the right status class.
"""

from __future__ import annotations


class HarkError(Exception):
    """Base for all Hark exceptions."""


class NotReadyError(HarkError):
    """A startup component (context, operating mode, engine) is not initialized yet.

    Maps to HTTP 503 (Service Unavailable) in error handlers.
    """

    def __init__(self, component: str) -> None:
        self.component = component
        super().__init__(f"Server is not ready: {component} is not initialized.")


class ConfigError(HarkError):
    """Runtime configuration error."""


class UnauthorizedError(HarkError):
    """Missing or invalid API key."""

    def __init__(self, detail: str = "Invalid API key.") -> None:
        self.detail = detail
        super().__init__(detail)


class TaskNotEnabledError(HarkError):
    """The requested task is valid but disabled by the server's operating mode."""

    def __init__(self, task: str, hint: str) -> None:
        self.task = task
        self.hint = hint
        super().__init__(f"The '{task}' task is not enabled on this server. {hint}")


# --- Request ---


class InvalidRequestError(HarkError):
    """Invalid request parameter."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class InvalidFieldError(InvalidRequestError):
    """Multipart field name outside the recognized set."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Invalid field name: {field_name}")


class MissingFieldError(InvalidRequestError):
    """A required multipart field was not sent."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"The required '{field_name}' field is missing from the request.")


class MissingFilenameError(InvalidRequestError):
    """The file field was sent without a filename."""

    def __init__(self) -> None:
        super().__init__("Failed to upload the target file. The filename is not provided.")


class FieldTypeError(InvalidRequestError):
    """A field that must be text was sent as a file (or is not valid UTF-8)."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(
            f"Failed to read the '{field_name}' field. It should be a text field."
        )


class FieldParseError(InvalidRequestError):
    """A text field could not be parsed into its declared type."""

    def __init__(self, field_name: str, value: str, expected: str) -> None:
        self.field_name = field_name
        self.value = value
        self.expected = expected
        super().__init__(
            f"Failed to parse the '{field_name}' field: {value!r} is not {expected}."
        )


class UnsupportedFileTypeError(InvalidRequestError):
    """Uploaded filename has an extension outside the configured allow-list."""

    def __init__(self, filename: str, allowed: tuple[str, ...]) -> None:
        self.filename = filename
        self.allowed = allowed
        accepted = ", ".join(f"*.{ext}" for ext in allowed)
        super().__init__(f"Unsupported audio file '{filename}'. Accepted files: {accepted}")


# --- Audio ---


class AudioError(HarkError):
    """Audio processing error."""


class AudioFormatError(AudioError):
    """Unsupported or invalid audio format."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invalid audio format: {detail}")


class AudioTooLargeError(AudioError):
    """Audio file exceeds the allowed limit."""

    def __init__(self, size_bytes: int, max_bytes: int) -> None:
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        size_mb = size_bytes / (1024 * 1024)
        max_mb = max_bytes / (1024 * 1024)
        super().__init__(f"Audio file ({size_mb:.1f}MB) exceeds the {max_mb:.1f}MB limit")


class AudioConversionError(AudioError):
    """Upload could not be normalized into canonical mono PCM audio."""

    def __init__(self, filename: str, reason: str) -> None:
        self.filename = filename
        self.reason = reason
        super().__init__(f"Failed to convert '{filename}' to canonical audio: {reason}")


# --- Archive ---


class ArchiveError(HarkError):
    """On-disk archive read or write failure."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class FileNotFoundInArchiveError(ArchiveError):
    """File id is not present in the archive."""

    def __init__(self, file_id: str) -> None:
        self.file_id = file_id
        super().__init__(f"File '{file_id}' not found")


# --- Engine ---


class EngineError(HarkError):
    """Inference engine failure."""

    stage = "engine"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"{self._prefix()}: {reason}")

    def _prefix(self) -> str:
        return "Inference engine failed"


class EngineLoadError(EngineError):
    """Model could not be loaded into the engine."""

    stage = "load"

    def _prefix(self) -> str:
        return "Failed to load the model"


class EngineContextError(EngineError):
    """Execution context could not be (re)built."""

    stage = "init_context"

    def _prefix(self) -> str:
        return "Failed to initialize the execution context"


class EngineInputError(EngineError):
    """Engine rejected an input tensor."""

    stage = "set_input"

    def _prefix(self) -> str:
        return "Failed to set input tensor"


class EngineComputeError(EngineError):
    """Engine compute step failed."""

    stage = "compute"

    def _prefix(self) -> str:
        return "Failed to compute the graph"


class EngineOutputError(EngineError):
    """Engine output tensor could not be retrieved."""

    stage = "get_output"

    def _prefix(self) -> str:
        return "Failed to get the generated output tensor"


class OutputDecodeError(EngineError):
    """Engine output overflowed the scratch buffer or is not valid UTF-8."""

    stage = "decode"

    def _prefix(self) -> str:
        return "Failed to decode the engine output"


class SerializationError(HarkError):
    """Response payload could not be encoded as JSON."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Failed to serialize the response: {detail}")
