"""/v1/files: list, retrieve and delete archived files."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from hark.archive.models import FileList
from hark.archive.store import FileArchive  # noqa: TC001
from hark.server.dependencies import get_archive, verify_api_key
from hark.server.encoder import json_response, preflight_response

router = APIRouter(tags=["Files"], dependencies=[Depends(verify_api_key)])


@router.get("/v1/files")
async def list_files(archive: FileArchive = Depends(get_archive)) -> Response:  # noqa: B008
    """List every archived file, oldest first."""
    files = await archive.list_files()
    return json_response(FileList(data=files))


@router.get("/v1/files/{file_id}")
async def retrieve_file(
    file_id: str,
    archive: FileArchive = Depends(get_archive),  # noqa: B008
) -> Response:
    """Return one file object (404 if unknown)."""
    return json_response(await archive.get(file_id))


@router.delete("/v1/files/{file_id}")
async def delete_file(
    file_id: str,
    archive: FileArchive = Depends(get_archive),  # noqa: B008
) -> Response:
    """Delete a file.

    Idempotent: deleting a missing file returns ``deleted: false`` without error.
    """
    return json_response(await archive.delete(file_id))


preflight_router = APIRouter(include_in_schema=False)


@preflight_router.options("/v1/files")
@preflight_router.options("/v1/files/{file_id}")
async def files_preflight() -> Response:
    return preflight_response()
