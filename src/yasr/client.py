"""Client-facing registry API.

Operations that identify schema metadata accept either the numeric metadata
id or a ``SchemaMetadataKey``. Name keys are resolved to ids first and then
handled by the id-based implementation, so both call forms behave the same.

Example:
    >>> from yasr import RegistryConfig, SchemaRegistryClient
    >>> from yasr.models import (
    ...     Compatibility, SchemaMetadata, SchemaMetadataKey, SerDesInfo,
    ...     VersionedSchema,
    ... )
    >>>
    >>> with SchemaRegistryClient.from_config(RegistryConfig()) as client:
    ...     metadata = SchemaMetadata(
    ...         name="com.example.iot.device",
    ...         type="avro",
    ...         compatibility=Compatibility.BOTH,
    ...     )
    ...     key1 = client.register_schema(metadata, VersionedSchema(schema1))
    ...     key2 = client.add_versioned_schema(
    ...         SchemaMetadataKey("com.example.iot.device"), VersionedSchema(schema2)
    ...     )
    ...     latest = client.get_latest_schema(key1.schema_metadata_id)
    ...
    ...     with open("device-serdes.zip", "rb") as f:
    ...         file_id = client.upload_file(f)
    ...     serializer_id = client.add_serializer(
    ...         SerDesInfo(
    ...             name="device serializer",
    ...             class_name="acme.serdes.DeviceSerializer",
    ...             file_id=file_id,
    ...         )
    ...     )
    ...     client.map_schema_with_serdes(key1.schema_metadata_id, serializer_id)
    ...     info = client.get_serializers(key1.schema_metadata_id)[0]
    ...     with client.create_serializer_instance(info) as serializer:
    ...         data = serializer.serialize(payload, metadata)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import IO, Iterator, TypeVar, Union

from .config import RegistryConfig
from .exceptions import RegistryConfigError, RegistryError
from .files import FileSystemFileStorage
from .models import (
    CompatibilityResult,
    SchemaKey,
    SchemaMetadata,
    SchemaMetadataInfo,
    SchemaMetadataKey,
    SchemaVersionInfo,
    SerDesInfo,
    SerDesRole,
    VersionedSchema,
)
from .providers import SchemaProvider
from .registry import SchemaRegistry
from .serdes import BaseClassLoader, Deserializer, Serializer
from .storage import BaseSchemaStore, FileSystemSchemaStore, InMemorySchemaStore

T = TypeVar("T")

MetadataRef = Union[int, SchemaMetadataKey]


class SchemaRegistryClient:
    """Client for registering and looking up schemas and serializers.

    Schema versions and metadata ids never change once issued, so the client
    keeps bounded LRU caches of version lookups and name-to-id resolution.
    Failed lookups are not cached.

    Args:
        registry: The registry service to call.
        cache_size: Maximum entries per lookup cache. 0 disables caching.
        logger: Optional logger. If None, creates a default logger at
            "yasr.client".
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        cache_size: int = 256,
        logger: logging.Logger | None = None,
    ):
        self.registry = registry
        self.logger = logger or logging.getLogger("yasr.client")
        self._get_version = lru_cache(maxsize=cache_size)(registry.get_schema_version)
        self._id_for_name = lru_cache(maxsize=cache_size)(self._lookup_id)
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: RegistryConfig,
        providers: dict[str, SchemaProvider] | None = None,
        class_loader: BaseClassLoader | None = None,
        logger: logging.Logger | None = None,
    ) -> SchemaRegistryClient:
        """Build a client and its registry collaborators from ``config``."""
        storage_options = dict(config.storage_options)
        store: BaseSchemaStore
        if config.store == "memory":
            store = InMemorySchemaStore()
        elif config.store_path:
            store = FileSystemSchemaStore(config.store_path, **storage_options)
        else:
            raise RegistryConfigError(
                "store_path is required when store is 'filesystem'."
            )
        file_storage = FileSystemFileStorage(config.file_storage_path, **storage_options)
        registry = SchemaRegistry(
            store, file_storage, providers=providers, class_loader=class_loader
        )
        return cls(registry, cache_size=config.cache_size, logger=logger)

    # Schema metadata

    def register_schema_metadata(self, metadata: SchemaMetadata) -> bool:
        """Return True if the metadata record was created by this call."""
        return self.registry.register_schema_metadata(metadata)

    def get_schema_metadata(self, key: MetadataRef) -> SchemaMetadataInfo:
        return self.registry.get_schema_metadata(self._resolve(key))

    def list_all_schemas(self) -> Iterator[SchemaMetadataInfo]:
        """Iterate over every registered schema metadata record."""
        return iter(self.registry.list_schema_metadata())

    # Versions

    def register_schema(
        self, metadata: SchemaMetadata, versioned_schema: VersionedSchema
    ) -> SchemaKey:
        """Return the key of an existing identical version or of a new version."""
        return self.registry.register_schema(metadata, versioned_schema)

    def add_versioned_schema(
        self, key: MetadataRef, versioned_schema: VersionedSchema
    ) -> SchemaKey:
        """Add a new version under the policy of the schema's metadata.

        Raises:
            InvalidSchemaError: If the schema text is malformed.
            IncompatibleSchemaError: If the schema is incompatible according
                to the metadata's compatibility policy.
        """
        return self.registry.add_schema_version(self._resolve(key), versioned_schema)

    def get_schema(self, schema_key: SchemaKey) -> SchemaVersionInfo:
        return self._get_version(schema_key)

    def get_latest_schema(self, key: MetadataRef) -> SchemaVersionInfo:
        return self.registry.get_latest_schema_version(self._resolve(key))

    def get_all_versions(self, key: MetadataRef) -> list[SchemaVersionInfo]:
        return self.registry.get_all_versions(self._resolve(key))

    def is_compatible_with_all_versions(self, key: MetadataRef, schema_text: str) -> bool:
        return self.registry.is_compatible_with_all_versions(
            self._resolve(key), schema_text
        )

    def check_compatibility(self, key: MetadataRef, schema_text: str) -> CompatibilityResult:
        return self.registry.check_compatibility(self._resolve(key), schema_text)

    # Files

    def upload_file(self, data: IO[bytes] | bytes) -> str:
        return self.registry.upload_file(data)

    def download_file(self, file_id: str) -> IO[bytes]:
        return self.registry.download_file(file_id)

    # SerDes

    def add_serializer(self, info: SerDesInfo) -> int:
        return self._add_serdes(info, SerDesRole.SERIALIZER)

    def add_deserializer(self, info: SerDesInfo) -> int:
        return self._add_serdes(info, SerDesRole.DESERIALIZER)

    def map_schema_with_serdes(self, key: MetadataRef, serdes_id: int) -> None:
        self.registry.map_schema_with_serdes(self._resolve(key), serdes_id)

    def get_serializers(self, key: MetadataRef) -> list[SerDesInfo]:
        return self.registry.get_mapped_serdes(self._resolve(key), SerDesRole.SERIALIZER)

    def get_deserializers(self, key: MetadataRef) -> list[SerDesInfo]:
        return self.registry.get_mapped_serdes(self._resolve(key), SerDesRole.DESERIALIZER)

    def create_serializer_instance(
        self, info: SerDesInfo, expected_type: type[T] = Serializer  # type: ignore[assignment]
    ) -> T:
        return self.registry.create_serdes_instance(info, expected_type)

    def create_deserializer_instance(
        self, info: SerDesInfo, expected_type: type[T] = Deserializer  # type: ignore[assignment]
    ) -> T:
        return self.registry.create_serdes_instance(info, expected_type)

    # Lifecycle

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._get_version.cache_clear()
        self._id_for_name.cache_clear()
        self.registry.close()
        self.logger.debug("Closed schema registry client")

    def __enter__(self) -> SchemaRegistryClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # Private helper methods

    def _add_serdes(self, info: SerDesInfo, role: SerDesRole) -> int:
        stored = self.registry.add_serdes(info, role)
        if stored.id is None:
            raise RegistryError(f"Schema store assigned no id to SerDes '{stored.name}'")
        return stored.id

    def _resolve(self, key: MetadataRef) -> int:
        if isinstance(key, SchemaMetadataKey):
            return self._id_for_name(key.name)
        if isinstance(key, int) and not isinstance(key, bool):
            return key
        raise TypeError(
            f"Expected a schema metadata id or SchemaMetadataKey, got {type(key).__name__}"
        )

    def _lookup_id(self, name: str) -> int:
        return self.registry.get_schema_metadata_by_name(name).id
