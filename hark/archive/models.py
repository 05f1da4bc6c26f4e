"""File objects returned by the archive (OpenAI files API shape)."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class UploadedFile(BaseModel):
    """Metadata of one archived artifact.

    ``bytes`` is the size of the payload as it was received.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    bytes: int
    created_at: int
    filename: str
    object: Literal["file"] = "file"
    purpose: Literal["assistants"] = "assistants"


class FileList(BaseModel):
    """Response for GET /v1/files."""

    object: Literal["list"] = "list"
    data: list[UploadedFile]


class DeleteFileResponse(BaseModel):
    """Response for DELETE /v1/files/{id}."""

    id: str
    object: Literal["file"] = "file"
    deleted: bool
