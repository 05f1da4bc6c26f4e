"""Filesystem archive for uploaded and generated audio artifacts.

Every artifact lives in its own directory named after a generated id, so
uploads with the same client filename never collide and deleting an
artifact is a single directory removal.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import shutil
import threading
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from hark.archive.models import DeleteFileResponse, UploadedFile
from hark.exceptions import ArchiveError, FileNotFoundInArchiveError, InvalidRequestError
from hark.logging import get_logger

logger = get_logger("archive.store")

_SAFE_FILE_ID = re.compile(r"^file_[a-zA-Z0-9-]+$")

METADATA_FILENAME = "metadata.json"

# Common filesystem limit for one path component, in bytes.
MAX_FILENAME_BYTES = 255


def new_file_id() -> str:
    return f"file_{uuid.uuid4()}"


def sanitize_filename(filename: str) -> str:
    """Strip any directory component a client may have put in the filename.

    Raises:
        InvalidRequestError: If nothing usable is left, the name contains a
            NUL byte, or it is longer than the filesystem allows.
    """
    if "\x00" in filename:
        raise InvalidRequestError(f"Invalid filename: {filename!r} contains a NUL byte.")
    name = os.path.basename(filename.replace("\\", "/")).strip()
    if not name or name in (".", "..") or name == METADATA_FILENAME:
        raise InvalidRequestError(f"Invalid filename: {filename!r}")
    if len(name.encode("utf-8")) > MAX_FILENAME_BYTES:
        raise InvalidRequestError(
            f"Invalid filename: longer than {MAX_FILENAME_BYTES} bytes ({name[:32]!r}...)."
        )
    return name


class FileArchive(ABC):
    """Abstract interface for artifact persistence."""

    @abstractmethod
    async def create(self, data: bytes, filename: str) -> UploadedFile:
        """Persist ``data`` under a fresh id and return its metadata."""
        ...

    @abstractmethod
    async def list_files(self) -> list[UploadedFile]:
        """Return the metadata of every archived file."""
        ...

    @abstractmethod
    async def get(self, file_id: str) -> UploadedFile:
        """Return the metadata of one file.

        Raises:
            FileNotFoundInArchiveError: If the id is unknown.
        """
        ...

    @abstractmethod
    async def delete(self, file_id: str) -> DeleteFileResponse:
        """Remove a file. Unknown ids report ``deleted=False``."""
        ...

    @abstractmethod
    def path_of(self, file_id: str, filename: str) -> Path:
        """Location of ``filename`` inside the directory of ``file_id``."""
        ...


class FileSystemArchive(FileArchive):
    """Filesystem-based archive.

    Storage layout::

        {root}/{file_id}/
            metadata.json  UploadedFile as created
            {filename}     the payload (and any derived canonical audio)

    The in-memory index keeps insertion order for the lifetime of the
    process. On first use it is rebuilt from a scan of ``root``, ordered by
    creation time and then id.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._index: dict[str, UploadedFile] = {}
        self._loaded = False
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    @staticmethod
    def is_valid_id(file_id: str) -> bool:
        return bool(_SAFE_FILE_ID.match(file_id))

    def path_of(self, file_id: str, filename: str) -> Path:
        if not self.is_valid_id(file_id):
            raise InvalidRequestError(f"Invalid file id format: {file_id!r}")
        return self._root / file_id / sanitize_filename(filename)

    # --- create ---

    def _create_sync(self, data: bytes, filename: str) -> UploadedFile:
        name = sanitize_filename(filename)
        file_id = new_file_id()
        file_dir = self._root / file_id

        try:
            # Both calls tolerate a concurrent creator of the same directory.
            os.makedirs(self._root, exist_ok=True)
            os.makedirs(file_dir, exist_ok=True)
            with open(file_dir / name, "wb") as f:
                f.write(data)

            uploaded = UploadedFile(
                id=file_id,
                bytes=len(data),
                created_at=int(time.time()),
                filename=name,
            )
            with open(file_dir / METADATA_FILENAME, "w") as f:
                json.dump(uploaded.model_dump(), f, indent=2)
        except (OSError, ValueError) as exc:
            shutil.rmtree(file_dir, ignore_errors=True)
            raise ArchiveError(f"Failed to create archive document {name}. {exc}") from exc

        with self._lock:
            self._load_locked()
            self._index[file_id] = uploaded

        logger.info("file_archived", file_id=file_id, filename=name, bytes=len(data))
        return uploaded

    async def create(self, data: bytes, filename: str) -> UploadedFile:
        return await asyncio.to_thread(self._create_sync, data, filename)

    # --- list / get ---

    def _list_sync(self) -> list[UploadedFile]:
        with self._lock:
            self._load_locked()
            return list(self._index.values())

    async def list_files(self) -> list[UploadedFile]:
        return await asyncio.to_thread(self._list_sync)

    def _get_sync(self, file_id: str) -> UploadedFile:
        with self._lock:
            self._load_locked()
            uploaded = self._index.get(file_id)
        if uploaded is None:
            raise FileNotFoundInArchiveError(file_id)
        return uploaded

    async def get(self, file_id: str) -> UploadedFile:
        return await asyncio.to_thread(self._get_sync, file_id)

    # --- delete ---

    def _delete_sync(self, file_id: str) -> DeleteFileResponse:
        if not self.is_valid_id(file_id):
            return DeleteFileResponse(id=file_id, deleted=False)

        file_dir = self._root / file_id
        with self._lock:
            self._load_locked()
            self._index.pop(file_id, None)
            if not file_dir.is_dir():
                return DeleteFileResponse(id=file_id, deleted=False)
            try:
                shutil.rmtree(file_dir)
            except FileNotFoundError:
                return DeleteFileResponse(id=file_id, deleted=False)
            except OSError as exc:
                raise ArchiveError(f"Failed to delete file '{file_id}'. {exc}") from exc

        logger.info("file_deleted", file_id=file_id)
        return DeleteFileResponse(id=file_id, deleted=True)

    async def delete(self, file_id: str) -> DeleteFileResponse:
        return await asyncio.to_thread(self._delete_sync, file_id)

    # --- disk scan ---

    def _load_locked(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if not self._root.is_dir():
            return

        found: list[UploadedFile] = []
        for entry in os.listdir(self._root):
            if not self.is_valid_id(entry) or entry in self._index:
                continue
            uploaded = self._read_entry(self._root / entry)
            if uploaded is not None:
                found.append(uploaded)

        found.sort(key=lambda f: (f.created_at, f.id))
        for uploaded in found:
            self._index[uploaded.id] = uploaded

        logger.info("archive_loaded", root=str(self._root), files=len(found))

    @staticmethod
    def _read_entry(file_dir: Path) -> UploadedFile | None:
        metadata_path = file_dir / METADATA_FILENAME
        try:
            if metadata_path.is_file():
                with open(metadata_path) as f:
                    return UploadedFile.model_validate(json.load(f))

            # Directories written without metadata hold the upload alone.
            payloads = sorted(p for p in file_dir.iterdir() if p.is_file())
            if not payloads:
                return None
            stat = payloads[0].stat()
            return UploadedFile(
                id=file_dir.name,
                bytes=stat.st_size,
                created_at=int(stat.st_mtime),
                filename=payloads[0].name,
            )
        except (OSError, ValueError) as exc:
            logger.warning("archive_entry_unreadable", path=str(file_dir), error=str(exc))
            return None
