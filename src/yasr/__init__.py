from .client import SchemaRegistryClient
from .config import RegistryConfig
from .models import (
    Compatibility,
    SchemaKey,
    SchemaMetadata,
    SchemaMetadataKey,
    SerDesInfo,
    VersionedSchema,
)
from .registry import SchemaRegistry
from .serdes import Deserializer, Serializer

__all__ = [
    "Compatibility",
    "Deserializer",
    "RegistryConfig",
    "SchemaKey",
    "SchemaMetadata",
    "SchemaMetadataKey",
    "SchemaRegistry",
    "SchemaRegistryClient",
    "SerDesInfo",
    "Serializer",
    "VersionedSchema",
]
