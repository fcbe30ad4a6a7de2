"""File storage for uploaded serializer/deserializer artifacts.

Files are content addressed: the file id is the sha256 hex digest of the
uploaded bytes, so uploading identical bytes twice returns the same id and
downloads by a returned id always yield the same bytes.
"""

from __future__ import annotations

# pyright: reportUnknownArgumentType=none, reportUnknownMemberType=none
# pyright: reportUnknownVariableType=none

import hashlib
import io
import logging
import re
from abc import ABC, abstractmethod
from typing import IO, Any

import fsspec  # type: ignore[import]

from ._dependencies import ensure_protocol_dependency
from .exceptions import (
    BlobNotFoundError,
    MissingDependencyError,
    RegistryConnectionError,
    RegistryError,
)

_FILE_ID_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class BaseFileStorage(ABC):
    """Abstract base class for file storage implementations."""

    @abstractmethod
    def upload(self, data: IO[bytes] | bytes) -> str:
        """Store the bytes of ``data`` and return their file id."""
        raise NotImplementedError

    @abstractmethod
    def download(self, file_id: str) -> IO[bytes]:
        """Return a binary stream over the stored file.

        Raises:
            BlobNotFoundError: If no file is stored under ``file_id``.
        """
        raise NotImplementedError


class FileSystemFileStorage(BaseFileStorage):
    """Content-addressed file storage on any fsspec filesystem.

    Files are laid out as ``{base_path}/{file_id[:2]}/{file_id}``.

    Args:
        base_path: Local path or cloud URL ("s3://bucket/files/", ...).
        logger: Optional logger. If None, creates a default logger at
            "yasr.files".
        **fsspec_kwargs: Additional arguments passed to fsspec.

    Example:
        >>> storage = FileSystemFileStorage("/data/registry/files")
        >>> with open("serdes.zip", "rb") as f:
        ...     file_id = storage.upload(f)
        >>> storage.download(file_id).read()[:2]
        b'PK'
    """

    def __init__(
        self,
        base_path: str,
        logger: logging.Logger | None = None,
        **fsspec_kwargs: Any,
    ):
        self.logger = logger or logging.getLogger("yasr.files")
        ensure_protocol_dependency(base_path)

        try:
            fs_obj, resolved_base_path = fsspec.core.url_to_fs(base_path, **fsspec_kwargs)
            fs_obj.makedirs(resolved_base_path, exist_ok=True)
        except MissingDependencyError:
            raise
        except Exception as e:
            raise RegistryConnectionError(
                f"Failed to connect to file storage at '{base_path}': {e}"
            ) from e

        self.fs = fs_obj
        self.base_path = resolved_base_path.rstrip("/")
        self.logger.info(f"Initialized FileSystemFileStorage at: {self.base_path}")

    def upload(self, data: IO[bytes] | bytes) -> str:
        content = data if isinstance(data, (bytes, bytearray)) else data.read()
        if isinstance(content, str):
            raise TypeError("upload expects bytes or a binary stream")

        file_id = hashlib.sha256(content).hexdigest()
        file_path = self._path(file_id)
        if self.fs.exists(file_path):
            self.logger.debug(f"File {file_id} already stored, skipping upload")
            return file_id

        try:
            self.fs.makedirs(file_path.rsplit("/", 1)[0], exist_ok=True)
            with self.fs.open(file_path, "wb") as f:
                f.write(content)
        except Exception as e:
            raise RegistryError(f"Failed to upload file {file_id}: {e}") from e

        self.logger.info(f"Uploaded file {file_id} ({len(content)} bytes)")
        return file_id

    def download(self, file_id: str) -> IO[bytes]:
        if not _FILE_ID_PATTERN.match(file_id or ""):
            raise BlobNotFoundError(f"File '{file_id}' not found: malformed file id")

        try:
            with self.fs.open(self._path(file_id), "rb") as f:
                content = f.read()
        except FileNotFoundError:
            raise BlobNotFoundError(f"File '{file_id}' not found") from None
        except Exception as e:
            raise RegistryError(f"Failed to download file '{file_id}': {e}") from e

        self.logger.debug(f"Downloaded file {file_id}")
        return io.BytesIO(content)

    def _path(self, file_id: str) -> str:
        return f"{self.base_path}/{file_id[:2]}/{file_id}"
