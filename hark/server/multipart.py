"""Streaming multipart/form-data reader.

Feeds the request body chunk by chunk into ``python_multipart`` and yields
each part as soon as its closing boundary has been seen, in the order the
client sent them. Part sizes are bounded while streaming so an oversized
upload is rejected before it is fully buffered.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from hark.exceptions import AudioTooLargeError, HarkError, InvalidRequestError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

MAX_TEXT_FIELD_BYTES = 64 * 1024

_TEXT_CONTENT_PREFIX = "text/"


def _decode_header_value(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


def extract_boundary(content_type: str | None) -> bytes:
    """Return the multipart boundary declared in a ``content-type`` header.

    Raises:
        InvalidRequestError: Not multipart/form-data, or no boundary.
    """
    if not content_type:
        raise InvalidRequestError("Missing content-type header. Expected multipart/form-data.")
    media_type, params = parse_options_header(content_type)
    if media_type != b"multipart/form-data":
        raise InvalidRequestError(
            f"Unsupported content-type '{_decode_header_value(media_type)}'. "
            "Expected multipart/form-data."
        )
    boundary = params.get(b"boundary")
    if not boundary:
        raise InvalidRequestError("Failed to get the boundary from the request.")
    return boundary


@dataclass(frozen=True, slots=True)
class MultipartField:
    """One fully read part of a multipart body."""

    name: str
    data: bytes
    filename: str | None = None
    content_type: str | None = None

    @property
    def is_text(self) -> bool:
        """A text field has no filename and a text (or absent) content type."""
        if self.filename is not None:
            return False
        return self.content_type is None or self.content_type.startswith(_TEXT_CONTENT_PREFIX)

    def text(self) -> str:
        return self.data.decode("utf-8")


class MultipartFieldReader:
    """Incrementally parse a multipart body into ``MultipartField`` items.

    Args:
        stream: Request body chunks (``request.stream()``).
        boundary: Boundary from :func:`extract_boundary`.
        max_file_size: Limit for parts that carry a filename.
        max_text_size: Limit for the other parts.
    """

    def __init__(
        self,
        stream: AsyncIterator[bytes],
        boundary: bytes,
        *,
        max_file_size: int,
        max_text_size: int = MAX_TEXT_FIELD_BYTES,
    ) -> None:
        self._stream = stream
        self._max_file_size = max_file_size
        self._max_text_size = max_text_size

        self._ready: deque[MultipartField] = deque()
        self._error: HarkError | None = None
        self._ended = False

        self._header_field = bytearray()
        self._header_value = bytearray()
        self._headers: dict[bytes, bytes] = {}
        self._name = ""
        self._filename: str | None = None
        self._content_type: str | None = None
        self._data = bytearray()

        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_end": self._on_end,
            },
        )

    async def fields(self) -> AsyncIterator[MultipartField]:
        """Yield parts in body order.

        Raises:
            InvalidRequestError: Malformed or truncated body.
            AudioTooLargeError: A file part exceeds ``max_file_size``.
        """
        async for chunk in self._stream:
            if not chunk:
                continue
            self._feed(chunk)
            while self._ready:
                yield self._ready.popleft()

        self._parser.finalize()
        if self._error is not None:
            raise self._error
        if not self._ended:
            raise InvalidRequestError("Malformed multipart body: unexpected end of data.")
        while self._ready:
            yield self._ready.popleft()

    def _feed(self, chunk: bytes) -> None:
        try:
            self._parser.write(chunk)
        except MultipartParseError as exc:
            raise InvalidRequestError(f"Malformed multipart body: {exc}") from exc
        if self._error is not None:
            raise self._error

    # --- parser callbacks ---

    def _on_part_begin(self) -> None:
        self._headers = {}
        self._name = ""
        self._filename = None
        self._content_type = None
        self._data = bytearray()

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field.extend(data[start:end])

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value.extend(data[start:end])

    def _on_header_end(self) -> None:
        self._headers[bytes(self._header_field).lower()] = bytes(self._header_value)
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        disposition = self._headers.get(b"content-disposition")
        if disposition is None:
            self._fail(InvalidRequestError("Multipart part without a content-disposition header."))
            return
        _, options = parse_options_header(disposition)
        name = options.get(b"name")
        if name is None:
            self._fail(InvalidRequestError("Multipart part without a field name."))
            return
        self._name = _decode_header_value(name)
        filename = options.get(b"filename")
        self._filename = _decode_header_value(filename) if filename is not None else None
        content_type = self._headers.get(b"content-type")
        self._content_type = (
            _decode_header_value(content_type).strip().lower() if content_type else None
        )

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._error is not None:
            return
        self._data.extend(data[start:end])
        if self._filename is not None:
            if len(self._data) > self._max_file_size:
                self._fail(AudioTooLargeError(len(self._data), self._max_file_size))
        elif len(self._data) > self._max_text_size:
            self._fail(
                InvalidRequestError(
                    f"The '{self._name}' field exceeds {self._max_text_size} bytes."
                )
            )

    def _on_part_end(self) -> None:
        if self._error is not None:
            return
        self._ready.append(
            MultipartField(
                name=self._name,
                data=bytes(self._data),
                filename=self._filename,
                content_type=self._content_type,
            )
        )
        self._data = bytearray()

    def _on_end(self) -> None:
        self._ended = True

    def _fail(self, error: HarkError) -> None:
        if self._error is None:
            self._error = error
