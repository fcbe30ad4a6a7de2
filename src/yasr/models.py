"""Core data structures for yasr.

Every record handed out by the registry is a frozen dataclass, so callers
and caches can share them freely without defensive copies.

Example:
    >>> from yasr.models import Compatibility, SchemaMetadata, VersionedSchema
    >>>
    >>> metadata = SchemaMetadata(
    ...     name="com.example.iot.device",
    ...     type="avro",
    ...     compatibility=Compatibility.BOTH,
    ... )
    >>> schema = VersionedSchema(schema_text='{"type": "string"}')
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .exceptions import InvalidSchemaNameError, RegistryError

# Characters not allowed in schema names (filesystem-unsafe)
INVALID_NAME_CHARS = frozenset({"/", "\\", ":", "*", "?", "<", ">", "|", "\0"})

DEFAULT_SCHEMA_GROUP = "default"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Compatibility(str, Enum):
    """Evolution rule governing which new versions may be appended."""

    NONE = "NONE"
    BACKWARD = "BACKWARD"  # new schema reads data written with the previous one
    FORWARD = "FORWARD"  # previous schema reads data written with the new one
    BOTH = "BOTH"  # backward and forward against the previous version
    FULL = "FULL"  # backward and forward against every version


class CompatibilityDirection(str, Enum):
    """Direction of a single reader/writer compatibility check."""

    BACKWARD = "BACKWARD"
    FORWARD = "FORWARD"


class SerDesRole(str, Enum):
    SERIALIZER = "SERIALIZER"
    DESERIALIZER = "DESERIALIZER"


def validate_schema_name(name: str) -> None:
    """Validate that a schema name is non-empty and filesystem-safe.

    Raises:
        InvalidSchemaNameError: If the name is empty or contains invalid
            characters.
    """
    if not name:
        raise InvalidSchemaNameError("Schema name cannot be empty")

    invalid_found = set(name) & INVALID_NAME_CHARS
    if invalid_found:
        chars_str = ", ".join(repr(c) for c in sorted(invalid_found))
        raise InvalidSchemaNameError(
            f"Schema name '{name}' contains invalid characters: {chars_str}"
        )


@dataclass(frozen=True)
class SchemaMetadata:
    """Named, typed, policy-bearing identity of a schema family.

    Args:
        name: Unique schema name, e.g. ``"com.example.iot.device"``.
        type: Schema type, used to select the schema provider (e.g. ``"avro"``).
        compatibility: Compatibility policy applied when adding versions.
        evolve: Whether versions beyond the first may be added.
        description: Optional human-readable description.
        schema_group: Logical group the schema belongs to.
    """

    name: str
    type: str
    compatibility: Compatibility = Compatibility.BACKWARD
    evolve: bool = True
    description: str | None = None
    schema_group: str = DEFAULT_SCHEMA_GROUP

    def __post_init__(self) -> None:
        validate_schema_name(self.name)
        if not self.type:
            raise InvalidSchemaNameError(
                f"Schema '{self.name}' must declare a schema type"
            )
        # Accept plain strings such as "FULL" for the policy.
        object.__setattr__(self, "compatibility", Compatibility(self.compatibility))

    @property
    def key(self) -> SchemaMetadataKey:
        return SchemaMetadataKey(self.name)


@dataclass(frozen=True)
class SchemaMetadataKey:
    """Name-based identity of a schema metadata record."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class SchemaMetadataInfo:
    """Stored schema metadata record with its assigned id."""

    id: int
    metadata: SchemaMetadata
    created_at: datetime = field(default_factory=utcnow)

    @property
    def name(self) -> str:
        return self.metadata.name


@dataclass(frozen=True, order=True)
class SchemaKey:
    """Identity of one schema version: metadata id plus version number."""

    schema_metadata_id: int
    version: int

    def __post_init__(self) -> None:
        if self.version < 1:
            raise RegistryError(
                f"Schema versions start at 1, got {self.version} "
                f"for schema metadata id {self.schema_metadata_id}"
            )

    def __str__(self) -> str:
        return f"{self.schema_metadata_id}:v{self.version}"


@dataclass(frozen=True)
class VersionedSchema:
    """Schema text submitted as a candidate new version."""

    schema_text: str
    description: str | None = None


@dataclass(frozen=True)
class SchemaVersionInfo:
    """One immutable schema version stored in the version ledger."""

    schema_key: SchemaKey
    schema_text: str
    fingerprint: str
    created_at: datetime = field(default_factory=utcnow)
    description: str | None = None

    @property
    def version(self) -> int:
        return self.schema_key.version

    @property
    def schema_metadata_id(self) -> int:
        return self.schema_key.schema_metadata_id


@dataclass(frozen=True)
class SerDesInfo:
    """Serializer or deserializer descriptor.

    ``id`` and ``role`` are assigned by the registry when the descriptor is
    added; descriptors built by callers leave them unset.

    Args:
        name: Display name.
        class_name: Dotted path of the class inside the uploaded file,
            e.g. ``"acme.serdes.AvroSnapshotSerializer"``.
        file_id: Id returned by ``upload_file`` for the file holding the class.
        description: Optional description.
    """

    name: str
    class_name: str
    file_id: str
    description: str | None = None
    id: int | None = None
    role: SerDesRole | None = None


@dataclass(frozen=True)
class CompatibilityResult:
    """Detailed outcome of a non-mutating compatibility check."""

    compatible: bool
    schema_key: SchemaKey | None = None
    direction: CompatibilityDirection | None = None
    messages: tuple[str, ...] = ()
