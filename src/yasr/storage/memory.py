"""In-memory schema store for tests, embedding and single-process use."""

from __future__ import annotations

import threading
from dataclasses import replace

from ..exceptions import SchemaNotFoundError, SerDesNotFoundError
from ..models import (
    SchemaKey,
    SchemaMetadata,
    SchemaMetadataInfo,
    SchemaVersionInfo,
    SerDesInfo,
    SerDesRole,
)
from .base import BaseSchemaStore


class InMemorySchemaStore(BaseSchemaStore):
    """Schema store holding all state in process memory.

    All operations run under a single lock, so every read observes a
    consistent snapshot and appends are atomic.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._metadata: dict[int, SchemaMetadataInfo] = {}
        self._ids_by_name: dict[str, int] = {}
        self._versions: dict[int, list[SchemaVersionInfo]] = {}
        self._serdes: dict[int, SerDesInfo] = {}
        self._mappings: dict[int, set[int]] = {}

    def add_metadata(self, metadata: SchemaMetadata) -> tuple[SchemaMetadataInfo, bool]:
        with self._lock:
            existing_id = self._ids_by_name.get(metadata.name)
            if existing_id is not None:
                existing = self._metadata[existing_id]
                self._check_existing_metadata(existing, metadata)
                return existing, False

            info = SchemaMetadataInfo(id=len(self._metadata) + 1, metadata=metadata)
            self._metadata[info.id] = info
            self._ids_by_name[metadata.name] = info.id
            self._versions[info.id] = []
            self._mappings[info.id] = set()
            return info, True

    def get_metadata(self, metadata_id: int) -> SchemaMetadataInfo:
        with self._lock:
            try:
                return self._metadata[metadata_id]
            except KeyError:
                raise SchemaNotFoundError(
                    f"Schema metadata id {metadata_id} not found"
                ) from None

    def get_metadata_by_name(self, name: str) -> SchemaMetadataInfo:
        with self._lock:
            metadata_id = self._ids_by_name.get(name)
            if metadata_id is None:
                raise SchemaNotFoundError(f"Schema metadata '{name}' not found")
            return self._metadata[metadata_id]

    def list_metadata(self) -> list[SchemaMetadataInfo]:
        with self._lock:
            return [self._metadata[i] for i in sorted(self._metadata)]

    def append_version_if_absent(
        self,
        metadata_id: int,
        version: int,
        schema_text: str,
        fingerprint: str,
        description: str | None = None,
    ) -> SchemaVersionInfo:
        with self._lock:
            versions = self._ledger(metadata_id)
            self._check_next_version(metadata_id, version, len(versions))
            info = SchemaVersionInfo(
                schema_key=SchemaKey(metadata_id, version),
                schema_text=schema_text,
                fingerprint=fingerprint,
                description=description,
            )
            versions.append(info)
            return info

    def get_versions(self, metadata_id: int) -> list[SchemaVersionInfo]:
        with self._lock:
            return list(self._ledger(metadata_id))

    def add_serdes(self, info: SerDesInfo, role: SerDesRole) -> SerDesInfo:
        with self._lock:
            stored = replace(info, id=len(self._serdes) + 1, role=role)
            self._serdes[stored.id] = stored
            return stored

    def get_serdes(self, serdes_id: int) -> SerDesInfo:
        with self._lock:
            try:
                return self._serdes[serdes_id]
            except KeyError:
                raise SerDesNotFoundError(f"SerDes id {serdes_id} not found") from None

    def add_mapping(self, metadata_id: int, serdes_id: int) -> bool:
        with self._lock:
            mapped = self._mapped_ids(metadata_id)
            self.get_serdes(serdes_id)
            if serdes_id in mapped:
                return False
            mapped.add(serdes_id)
            return True

    def get_mapped_serdes(self, metadata_id: int, role: SerDesRole) -> list[SerDesInfo]:
        with self._lock:
            mapped = self._mapped_ids(metadata_id)
            return [
                self._serdes[i] for i in sorted(mapped) if self._serdes[i].role is role
            ]

    def _ledger(self, metadata_id: int) -> list[SchemaVersionInfo]:
        try:
            return self._versions[metadata_id]
        except KeyError:
            raise SchemaNotFoundError(
                f"Schema metadata id {metadata_id} not found"
            ) from None

    def _mapped_ids(self, metadata_id: int) -> set[int]:
        try:
            return self._mappings[metadata_id]
        except KeyError:
            raise SchemaNotFoundError(
                f"Schema metadata id {metadata_id} not found"
            ) from None
