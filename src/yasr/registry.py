"""Schema registry service.

``SchemaRegistry`` ties the registry collaborators together:

- a schema store (metadata identity, version ledger, SerDes records);
- a file storage for uploaded serializer/deserializer files;
- schema type providers, selected by ``SchemaMetadata.type``;
- a class loader used to instantiate serializers and deserializers.

Example:
    >>> from yasr.files import FileSystemFileStorage
    >>> from yasr.models import Compatibility, SchemaMetadata, VersionedSchema
    >>> from yasr.registry import SchemaRegistry
    >>> from yasr.storage import InMemorySchemaStore
    >>>
    >>> registry = SchemaRegistry(
    ...     InMemorySchemaStore(), FileSystemFileStorage("/tmp/registry-files")
    ... )
    >>> metadata = SchemaMetadata(
    ...     name="com.example.device", type="avro", compatibility=Compatibility.BOTH
    ... )
    >>> key = registry.register_schema(metadata, VersionedSchema('"string"'))
    >>> key.version
    1
"""

from __future__ import annotations

import logging
import threading
from typing import IO, Mapping, TypeVar

from .compatibility import CompatibilityEvaluator
from .exceptions import (
    InvalidSchemaError,
    RegistryError,
    SchemaEvolutionError,
    VersionConflictError,
)
from .files import BaseFileStorage
from .models import (
    CompatibilityResult,
    SchemaKey,
    SchemaMetadata,
    SchemaMetadataInfo,
    SchemaVersionInfo,
    SerDesInfo,
    SerDesRole,
    VersionedSchema,
)
from .providers import SchemaProvider, default_providers
from .serdes import BaseClassLoader, SerDesInstantiator
from .storage import BaseSchemaStore

T = TypeVar("T")


class SchemaRegistry:
    """Registry service operating on metadata ids.

    Registrations for the same metadata id are serialized by a per-id lock;
    registrations for different ids run in parallel. When the store reports
    that another writer took the version slot first (possible when several
    registry instances share one store), the registration is re-evaluated
    against the new history up to ``max_append_attempts`` times.

    Args:
        store: Schema store backend.
        file_storage: Storage for uploaded serializer/deserializer files.
        providers: Schema providers keyed by schema type. Defaults to the
            built-in providers.
        class_loader: Class loader for SerDes instantiation. Defaults to
            ``ModuleClassLoader``.
        logger: Optional logger. If None, creates a default logger at
            "yasr.registry".
        max_append_attempts: Attempts per registration before a version
            conflict is surfaced to the caller.
    """

    def __init__(
        self,
        store: BaseSchemaStore,
        file_storage: BaseFileStorage,
        providers: Mapping[str, SchemaProvider] | None = None,
        class_loader: BaseClassLoader | None = None,
        logger: logging.Logger | None = None,
        max_append_attempts: int = 3,
    ):
        self.logger = logger or logging.getLogger("yasr.registry")
        self.store = store
        self.file_storage = file_storage
        self.providers = dict(providers) if providers is not None else default_providers()
        self.evaluator = CompatibilityEvaluator()
        self.instantiator = SerDesInstantiator(file_storage, class_loader)
        self.max_append_attempts = max_append_attempts

        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # Schema metadata

    def register_schema_metadata(self, metadata: SchemaMetadata) -> bool:
        """Create the metadata record if its name is unseen.

        Returns:
            True if a new record was created, False if an identical record
            already existed.

        Raises:
            InvalidSchemaError: If no provider handles ``metadata.type``.
            SchemaMetadataConflictError: If a different record with the same
                name exists.
        """
        return self._add_metadata(metadata)[1]

    def get_schema_metadata(self, metadata_id: int) -> SchemaMetadataInfo:
        return self.store.get_metadata(metadata_id)

    def get_schema_metadata_by_name(self, name: str) -> SchemaMetadataInfo:
        return self.store.get_metadata_by_name(name)

    def list_schema_metadata(self) -> list[SchemaMetadataInfo]:
        return self.store.list_metadata()

    # Versions

    def register_schema(
        self, metadata: SchemaMetadata, versioned_schema: VersionedSchema
    ) -> SchemaKey:
        """Get or create the metadata, then get or add the schema version.

        Registration is idempotent on content: registering text whose
        fingerprint matches an existing version returns that version's key.
        """
        info, _ = self._add_metadata(metadata)
        return self.add_schema_version(info.id, versioned_schema)

    def add_schema_version(
        self, metadata_id: int, versioned_schema: VersionedSchema
    ) -> SchemaKey:
        """Add ``versioned_schema`` as the next version of ``metadata_id``.

        Returns:
            The key of the new version, or of the existing version with the
            same fingerprint.

        Raises:
            SchemaNotFoundError: If the metadata id is unknown.
            InvalidSchemaError: If the schema text is malformed.
            IncompatibleSchemaError: If the schema violates the metadata's
                compatibility policy or the metadata does not evolve.
        """
        metadata_info = self.store.get_metadata(metadata_id)
        provider = self._provider(metadata_info.metadata.type)
        schema_text = versioned_schema.schema_text
        fingerprint = provider.fingerprint(schema_text)

        with self._lock_for(metadata_id):
            for attempt in range(1, self.max_append_attempts + 1):
                versions = self.store.get_versions(metadata_id)
                for existing in versions:
                    if existing.fingerprint == fingerprint:
                        self.logger.debug(
                            f"Schema for '{metadata_info.name}' matches existing "
                            f"version {existing.version}"
                        )
                        return existing.schema_key

                if versions and not metadata_info.metadata.evolve:
                    raise SchemaEvolutionError(
                        f"Schema '{metadata_info.name}' does not allow new versions "
                        "(evolve is disabled)",
                        schema_key=versions[-1].schema_key,
                    )
                self.evaluator.ensure_compatible(
                    provider, metadata_info, versions, schema_text
                )

                try:
                    info = self.store.append_version_if_absent(
                        metadata_id,
                        len(versions) + 1,
                        schema_text,
                        fingerprint,
                        versioned_schema.description,
                    )
                except VersionConflictError:
                    if attempt == self.max_append_attempts:
                        raise
                    self.logger.warning(
                        f"Version conflict registering '{metadata_info.name}', "
                        f"retrying (attempt {attempt})"
                    )
                    continue

                self.logger.info(
                    f"Registered '{metadata_info.name}' as version {info.version}"
                )
                return info.schema_key

        raise RegistryError(f"Failed to register schema for '{metadata_info.name}'")

    def get_schema_version(self, schema_key: SchemaKey) -> SchemaVersionInfo:
        return self.store.get_version(schema_key)

    def get_latest_schema_version(self, metadata_id: int) -> SchemaVersionInfo:
        return self.store.get_latest_version(metadata_id)

    def get_all_versions(self, metadata_id: int) -> list[SchemaVersionInfo]:
        """Versions ascending; empty for metadata without versions."""
        return self.store.get_versions(metadata_id)

    # Compatibility

    def is_compatible_with_all_versions(self, metadata_id: int, schema_text: str) -> bool:
        """Check ``schema_text`` in both directions against every version.

        The metadata's configured policy is ignored and nothing is stored.
        """
        metadata_info = self.store.get_metadata(metadata_id)
        provider = self._provider(metadata_info.metadata.type)
        provider.parse(schema_text)
        versions = self.store.get_versions(metadata_id)
        return self.evaluator.check_all_versions(provider, versions, schema_text).compatible

    def check_compatibility(self, metadata_id: int, schema_text: str) -> CompatibilityResult:
        """Evaluate ``schema_text`` under the configured policy without storing it."""
        metadata_info = self.store.get_metadata(metadata_id)
        provider = self._provider(metadata_info.metadata.type)
        provider.parse(schema_text)
        versions = self.store.get_versions(metadata_id)
        return self.evaluator.evaluate(provider, metadata_info, versions, schema_text)

    # Files

    def upload_file(self, data: IO[bytes] | bytes) -> str:
        return self.file_storage.upload(data)

    def download_file(self, file_id: str) -> IO[bytes]:
        return self.file_storage.download(file_id)

    # SerDes

    def add_serdes(self, info: SerDesInfo, role: SerDesRole) -> SerDesInfo:
        """Store a new descriptor. Descriptors are never deduplicated."""
        stored = self.store.add_serdes(info, role)
        self.logger.info(
            f"Added {role.value.lower()} '{stored.name}' ({stored.class_name}) "
            f"as id {stored.id}"
        )
        return stored

    def get_serdes(self, serdes_id: int) -> SerDesInfo:
        return self.store.get_serdes(serdes_id)

    def map_schema_with_serdes(self, metadata_id: int, serdes_id: int) -> None:
        if self.store.add_mapping(metadata_id, serdes_id):
            self.logger.info(f"Mapped SerDes {serdes_id} to schema metadata id {metadata_id}")

    def get_mapped_serdes(self, metadata_id: int, role: SerDesRole) -> list[SerDesInfo]:
        return self.store.get_mapped_serdes(metadata_id, role)

    def create_serdes_instance(self, info: SerDesInfo, expected_type: type[T]) -> T:
        return self.instantiator.create(info, expected_type)

    def close(self) -> None:
        self.store.close()

    # Private helper methods

    def _add_metadata(self, metadata: SchemaMetadata) -> tuple[SchemaMetadataInfo, bool]:
        self._provider(metadata.type)
        info, created = self.store.add_metadata(metadata)
        if created:
            self.logger.info(
                f"Registered schema metadata '{metadata.name}' as id {info.id} "
                f"(type {metadata.type}, compatibility {metadata.compatibility.value})"
            )
        return info, created

    def _provider(self, schema_type: str) -> SchemaProvider:
        try:
            return self.providers[schema_type]
        except KeyError:
            available = ", ".join(sorted(self.providers)) or "none"
            raise InvalidSchemaError(
                f"No schema provider for type '{schema_type}'",
                suggestions=[f"Available schema types: {available}"],
            ) from None

    def _lock_for(self, metadata_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(metadata_id)
            if lock is None:
                lock = self._locks[metadata_id] = threading.Lock()
            return lock
