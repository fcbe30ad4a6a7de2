"""FileSystem-based schema store using fsspec.

This module provides a schema store that works across local filesystems,
S3, GCS, and Azure Blob Storage.

Example:
    >>> from yasr.storage import FileSystemSchemaStore
    >>>
    >>> # Local filesystem
    >>> store = FileSystemSchemaStore("/path/to/registry")
    >>>
    >>> # S3 (requires s3fs)
    >>> store = FileSystemSchemaStore("s3://bucket/registry/", profile="production")
"""

from __future__ import annotations

# pyright: reportUnknownArgumentType=none, reportUnknownMemberType=none
# pyright: reportUnknownVariableType=none

import logging
import threading
import urllib.parse
from datetime import datetime
from typing import Any

import fsspec  # type: ignore[import]
import yaml

from .._dependencies import ensure_protocol_dependency
from ..exceptions import (
    MissingDependencyError,
    RegistryConnectionError,
    RegistryError,
    SchemaNotFoundError,
    SerDesNotFoundError,
    VersionConflictError,
)
from ..models import (
    SchemaKey,
    SchemaMetadata,
    SchemaMetadataInfo,
    SchemaVersionInfo,
    SerDesInfo,
    SerDesRole,
)
from .base import BaseSchemaStore


class FileSystemSchemaStore(BaseSchemaStore):
    """Filesystem-based schema store using fsspec for multi-cloud support.

    Stores state in a simple directory structure:

        {base_path}/
        ├── ids/
        │   └── {metadata_id}.yaml          # id -> name index
        ├── schemas/
        │   └── {url_encoded_schema_name}/
        │       ├── metadata.yaml
        │       ├── serdes.yaml             # mapped SerDes ids
        │       └── versions/
        │           ├── 1.yaml
        │           └── 2.yaml
        └── serdes/
            └── {serdes_id}.yaml

    Metadata ids and SerDes ids are assigned as one more than the highest id
    present on the filesystem. Version files are never rewritten.

    Thread Safety:
        Operations are serialized by a lock held by this instance, so the
        store is safe to share between threads of one process. It is not
        safe for concurrent writers in different processes; ensure only one
        process has write access to the store.

    Args:
        base_path: Base path for the store. Can be local path or cloud URL:
            - Local: "/path/to/registry"
            - S3: "s3://bucket/registry/"
            - GCS: "gs://bucket/registry/"
            - Azure: "az://container/registry/"
        logger: Optional logger for store operations. If None, creates
            a default logger at "yasr.storage.filesystem".
        **fsspec_kwargs: Additional arguments passed to fsspec for authentication
            and configuration (e.g., profile="production" for S3).

    Raises:
        RegistryConnectionError: If the base path is invalid or inaccessible.
        MissingDependencyError: If the fsspec backend for a cloud URL is not
            installed.
    """

    def __init__(
        self,
        base_path: str,
        logger: logging.Logger | None = None,
        **fsspec_kwargs: Any,
    ):
        self.logger = logger or logging.getLogger("yasr.storage.filesystem")
        ensure_protocol_dependency(base_path)

        try:
            fs_obj, resolved_base_path = fsspec.core.url_to_fs(base_path, **fsspec_kwargs)
            fs_obj.makedirs(resolved_base_path, exist_ok=True)
        except MissingDependencyError:
            raise
        except Exception as e:
            raise RegistryConnectionError(
                f"Failed to connect to schema store at '{base_path}': {e}"
            ) from e

        self.fs = fs_obj
        self.base_path = resolved_base_path.rstrip("/")
        self._lock = threading.RLock()
        self.logger.info(f"Initialized FileSystemSchemaStore at: {self.base_path}")

    # Schema metadata

    def add_metadata(self, metadata: SchemaMetadata) -> tuple[SchemaMetadataInfo, bool]:
        with self._lock:
            metadata_path = f"{self._schema_dir(metadata.name)}/metadata.yaml"
            if self.fs.exists(metadata_path):
                existing = self._metadata_from_dict(self._read_yaml(metadata_path))
                self._check_existing_metadata(existing, metadata)
                return existing, False

            info = SchemaMetadataInfo(id=self._next_id("ids"), metadata=metadata)
            try:
                self._write_yaml(metadata_path, self._metadata_to_dict(info))
                try:
                    self._write_yaml(
                        f"{self.base_path}/ids/{info.id}.yaml", {"name": metadata.name}
                    )
                except Exception:
                    # Ids come from the index; metadata must not outlive its entry.
                    self.fs.rm(metadata_path)
                    raise
            except Exception as e:
                raise RegistryError(
                    f"Failed to register schema metadata '{metadata.name}': {e}"
                ) from e
            self.logger.debug(f"Stored schema metadata '{metadata.name}' as id {info.id}")
            return info, True

    def get_metadata(self, metadata_id: int) -> SchemaMetadataInfo:
        with self._lock:
            return self.get_metadata_by_name(self._name_for_id(metadata_id))

    def get_metadata_by_name(self, name: str) -> SchemaMetadataInfo:
        with self._lock:
            metadata_path = f"{self._schema_dir(name)}/metadata.yaml"
            try:
                return self._metadata_from_dict(self._read_yaml(metadata_path))
            except FileNotFoundError:
                raise SchemaNotFoundError(f"Schema metadata '{name}' not found") from None

    def list_metadata(self) -> list[SchemaMetadataInfo]:
        with self._lock:
            return [self.get_metadata(i) for i in self._list_ids("ids")]

    # Version ledger

    def append_version_if_absent(
        self,
        metadata_id: int,
        version: int,
        schema_text: str,
        fingerprint: str,
        description: str | None = None,
    ) -> SchemaVersionInfo:
        with self._lock:
            versions_dir = f"{self._schema_dir(self._name_for_id(metadata_id))}/versions"
            existing = self._list_versions(versions_dir)
            self._check_next_version(metadata_id, version, max(existing, default=0))

            file_path = f"{versions_dir}/{version}.yaml"
            if self.fs.exists(file_path):
                raise VersionConflictError(
                    f"Version {version} of schema metadata id {metadata_id} already exists"
                )

            info = SchemaVersionInfo(
                schema_key=SchemaKey(metadata_id, version),
                schema_text=schema_text,
                fingerprint=fingerprint,
                description=description,
            )
            try:
                self._write_yaml(file_path, self._version_to_dict(info))
            except Exception as e:
                raise RegistryError(
                    f"Failed to write version {version} of schema metadata id "
                    f"{metadata_id}: {e}"
                ) from e
            return info

    def get_versions(self, metadata_id: int) -> list[SchemaVersionInfo]:
        with self._lock:
            versions_dir = f"{self._schema_dir(self._name_for_id(metadata_id))}/versions"
            return [
                self._version_from_dict(
                    metadata_id, self._read_yaml(f"{versions_dir}/{v}.yaml")
                )
                for v in self._list_versions(versions_dir)
            ]

    # SerDes

    def add_serdes(self, info: SerDesInfo, role: SerDesRole) -> SerDesInfo:
        with self._lock:
            serdes_id = self._next_id("serdes")
            stored = SerDesInfo(
                name=info.name,
                class_name=info.class_name,
                file_id=info.file_id,
                description=info.description,
                id=serdes_id,
                role=role,
            )
            try:
                self._write_yaml(
                    f"{self.base_path}/serdes/{serdes_id}.yaml", self._serdes_to_dict(stored)
                )
            except Exception as e:
                raise RegistryError(f"Failed to store SerDes '{info.name}': {e}") from e
            return stored

    def get_serdes(self, serdes_id: int) -> SerDesInfo:
        with self._lock:
            try:
                data = self._read_yaml(f"{self.base_path}/serdes/{serdes_id}.yaml")
            except FileNotFoundError:
                raise SerDesNotFoundError(f"SerDes id {serdes_id} not found") from None
            return SerDesInfo(
                name=data["name"],
                class_name=data["class_name"],
                file_id=data["file_id"],
                description=data.get("description"),
                id=data["id"],
                role=SerDesRole(data["role"]),
            )

    def add_mapping(self, metadata_id: int, serdes_id: int) -> bool:
        with self._lock:
            mapping_path = self._mapping_path(metadata_id)
            self.get_serdes(serdes_id)
            mapped = self._read_mapping(mapping_path)
            if serdes_id in mapped:
                return False
            try:
                self._write_yaml(mapping_path, sorted(mapped | {serdes_id}))
            except Exception as e:
                raise RegistryError(
                    f"Failed to map SerDes id {serdes_id} to schema metadata id "
                    f"{metadata_id}: {e}"
                ) from e
            return True

    def get_mapped_serdes(self, metadata_id: int, role: SerDesRole) -> list[SerDesInfo]:
        with self._lock:
            mapped = self._read_mapping(self._mapping_path(metadata_id))
            serdes = [self.get_serdes(i) for i in sorted(mapped)]
            return [s for s in serdes if s.role is role]

    # Private helper methods

    def _schema_dir(self, name: str) -> str:
        encoded_name = urllib.parse.quote(name, safe="")
        return f"{self.base_path}/schemas/{encoded_name}"

    def _mapping_path(self, metadata_id: int) -> str:
        return f"{self._schema_dir(self._name_for_id(metadata_id))}/serdes.yaml"

    def _read_mapping(self, mapping_path: str) -> set[int]:
        if not self.fs.exists(mapping_path):
            return set()
        return set(self._read_yaml(mapping_path) or [])

    def _name_for_id(self, metadata_id: int) -> str:
        try:
            return self._read_yaml(f"{self.base_path}/ids/{metadata_id}.yaml")["name"]
        except FileNotFoundError:
            raise SchemaNotFoundError(
                f"Schema metadata id {metadata_id} not found"
            ) from None

    def _list_ids(self, directory: str) -> list[int]:
        return self._list_numbered(f"{self.base_path}/{directory}")

    def _list_versions(self, versions_dir: str) -> list[int]:
        return self._list_numbered(versions_dir)

    def _list_numbered(self, directory: str) -> list[int]:
        """List the ``{n}.yaml`` files of a directory as sorted integers."""
        if not self.fs.exists(directory):
            return []

        numbers = []
        for file_path in self.fs.ls(directory, detail=False):
            filename = file_path.rstrip("/").split("/")[-1]
            if filename.endswith(".yaml"):
                try:
                    numbers.append(int(filename[:-5]))
                except ValueError:
                    self.logger.warning(f"Skipping non-numbered file: {filename}")
        numbers.sort()
        return numbers

    def _next_id(self, directory: str) -> int:
        return max(self._list_ids(directory), default=0) + 1

    def _read_yaml(self, file_path: str) -> Any:
        with self.fs.open(file_path, "r") as f:
            return yaml.safe_load(f.read())

    def _write_yaml(self, file_path: str, data: Any) -> None:
        self.fs.makedirs(file_path.rsplit("/", 1)[0], exist_ok=True)
        with self.fs.open(file_path, "w") as f:
            f.write(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))

    @staticmethod
    def _metadata_to_dict(info: SchemaMetadataInfo) -> dict[str, Any]:
        metadata = info.metadata
        return {
            "id": info.id,
            "name": metadata.name,
            "type": metadata.type,
            "compatibility": metadata.compatibility.value,
            "evolve": metadata.evolve,
            "description": metadata.description,
            "schema_group": metadata.schema_group,
            "created_at": info.created_at.isoformat(),
        }

    @staticmethod
    def _metadata_from_dict(data: dict[str, Any]) -> SchemaMetadataInfo:
        metadata = SchemaMetadata(
            name=data["name"],
            type=data["type"],
            compatibility=data["compatibility"],
            evolve=data["evolve"],
            description=data.get("description"),
            schema_group=data["schema_group"],
        )
        return SchemaMetadataInfo(
            id=data["id"],
            metadata=metadata,
            created_at=datetime.fromisoformat(data["created_at"]),
        )

    @staticmethod
    def _version_to_dict(info: SchemaVersionInfo) -> dict[str, Any]:
        return {
            "version": info.version,
            "fingerprint": info.fingerprint,
            "created_at": info.created_at.isoformat(),
            "description": info.description,
            "schema_text": info.schema_text,
        }

    @staticmethod
    def _version_from_dict(metadata_id: int, data: dict[str, Any]) -> SchemaVersionInfo:
        return SchemaVersionInfo(
            schema_key=SchemaKey(metadata_id, data["version"]),
            schema_text=data["schema_text"],
            fingerprint=data["fingerprint"],
            created_at=datetime.fromisoformat(data["created_at"]),
            description=data.get("description"),
        )

    @staticmethod
    def _serdes_to_dict(info: SerDesInfo) -> dict[str, Any]:
        return {
            "id": info.id,
            "name": info.name,
            "description": info.description,
            "class_name": info.class_name,
            "file_id": info.file_id,
            "role": info.role.value if info.role else None,
        }
