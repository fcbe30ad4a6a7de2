"""Abstract schema store interface.

A schema store persists the three kinds of registry state:

- schema metadata records, keyed by a monotonically assigned id and by name;
- the append-only version ledger of each metadata id;
- serializer/deserializer descriptors and their mappings to metadata ids.

Stores guarantee atomicity of individual operations only. Serializing the
read-check-append sequence of a registration is the registry's job; the store
backs it with ``append_version_if_absent``, which refuses to fill a slot that
is taken or out of sequence.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..exceptions import (
    SchemaMetadataConflictError,
    SchemaNotFoundError,
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


class BaseSchemaStore(ABC):
    """Abstract base class for schema store implementations."""

    # Schema metadata

    @abstractmethod
    def add_metadata(self, metadata: SchemaMetadata) -> tuple[SchemaMetadataInfo, bool]:
        """Get or create the metadata record for ``metadata.name``.

        Returns:
            The stored record and whether it was created by this call.

        Raises:
            SchemaMetadataConflictError: If a record with the same name but
                different content exists.
        """
        raise NotImplementedError

    @abstractmethod
    def get_metadata(self, metadata_id: int) -> SchemaMetadataInfo:
        """Raises ``SchemaNotFoundError`` if the id is unknown."""
        raise NotImplementedError

    @abstractmethod
    def get_metadata_by_name(self, name: str) -> SchemaMetadataInfo:
        """Raises ``SchemaNotFoundError`` if the name is unknown."""
        raise NotImplementedError

    @abstractmethod
    def list_metadata(self) -> list[SchemaMetadataInfo]:
        """Return every metadata record ordered by id."""
        raise NotImplementedError

    # Version ledger

    @abstractmethod
    def append_version_if_absent(
        self,
        metadata_id: int,
        version: int,
        schema_text: str,
        fingerprint: str,
        description: str | None = None,
    ) -> SchemaVersionInfo:
        """Atomically append ``version`` if it is the next free slot.

        Raises:
            SchemaNotFoundError: If the metadata id is unknown.
            VersionConflictError: If the slot is taken or ``version`` is not
                the current latest version plus one.
        """
        raise NotImplementedError

    @abstractmethod
    def get_versions(self, metadata_id: int) -> list[SchemaVersionInfo]:
        """Return all versions ascending by version number.

        An existing metadata id without versions yields an empty list.

        Raises:
            SchemaNotFoundError: If the metadata id is unknown.
        """
        raise NotImplementedError

    def get_version(self, schema_key: SchemaKey) -> SchemaVersionInfo:
        """Raises ``SchemaNotFoundError`` for an unknown id or version."""
        versions = self.get_versions(schema_key.schema_metadata_id)
        if 1 <= schema_key.version <= len(versions):
            return versions[schema_key.version - 1]
        raise SchemaNotFoundError(f"Schema version {schema_key} not found")

    def get_latest_version(self, metadata_id: int) -> SchemaVersionInfo:
        """Raises ``SchemaNotFoundError`` for an unknown id or an empty ledger."""
        versions = self.get_versions(metadata_id)
        if not versions:
            raise SchemaNotFoundError(
                f"Schema metadata id {metadata_id} has no versions",
                suggestions=["Register a first version with add_versioned_schema"],
            )
        return versions[-1]

    # SerDes

    @abstractmethod
    def add_serdes(self, info: SerDesInfo, role: SerDesRole) -> SerDesInfo:
        """Store a new descriptor and return it with its assigned id and role."""
        raise NotImplementedError

    @abstractmethod
    def get_serdes(self, serdes_id: int) -> SerDesInfo:
        """Raises ``SerDesNotFoundError`` if the id is unknown."""
        raise NotImplementedError

    @abstractmethod
    def add_mapping(self, metadata_id: int, serdes_id: int) -> bool:
        """Map a descriptor to a metadata id; returns False if already mapped.

        Raises:
            SchemaNotFoundError: If the metadata id is unknown.
            SerDesNotFoundError: If the SerDes id is unknown.
        """
        raise NotImplementedError

    @abstractmethod
    def get_mapped_serdes(self, metadata_id: int, role: SerDesRole) -> list[SerDesInfo]:
        """Return descriptors of ``role`` mapped to the metadata id, by id.

        Raises:
            SchemaNotFoundError: If the metadata id is unknown.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release resources held by the store."""

    # Shared checks

    @staticmethod
    def _check_existing_metadata(
        existing: SchemaMetadataInfo, metadata: SchemaMetadata
    ) -> None:
        if existing.metadata != metadata:
            raise SchemaMetadataConflictError(
                f"Schema metadata '{metadata.name}' already exists "
                f"(id {existing.id}) with different content",
                suggestions=["Use a different schema name"],
            )

    @staticmethod
    def _check_next_version(metadata_id: int, version: int, latest: int) -> None:
        if version != latest + 1:
            raise VersionConflictError(
                f"Cannot append version {version} to schema metadata id "
                f"{metadata_id}: latest version is {latest}"
            )
