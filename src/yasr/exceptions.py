"""Custom yasr exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .models import CompatibilityDirection, SchemaKey


class RegistryError(Exception):
    """Base exception for all yasr-related errors.

    This is the root exception that all other yasr exceptions inherit from.
    It provides enhanced error reporting with suggestions for resolution.

    Attributes:
        suggestions: List of suggested fixes or actions.

    Example:
        >>> raise RegistryError(
        ...     "Schema 'orders' not found",
        ...     suggestions=["Register the schema metadata first"]
        ... )
    """

    def __init__(
        self,
        message: str,
        suggestions: list[str] | None = None,
    ):
        """Initialize a RegistryError.

        Args:
            message: The error message.
            suggestions: Optional list of suggestions to fix the error.
        """
        super().__init__(message)
        self.suggestions = suggestions or []

    def __str__(self) -> str:
        result = super().__str__()

        if self.suggestions:
            suggestions_text = "; ".join(self.suggestions)
            result += f" | {suggestions_text}"

        return result


# Lookup Exceptions
class NotFoundError(RegistryError):
    """Base for unresolved identifiers.

    Raised when a schema metadata id or name, a schema version, a SerDes id
    or a file id does not resolve. Always recoverable by the caller choosing
    a different identifier or registering first.
    """


class SchemaNotFoundError(NotFoundError):
    """Schema metadata or schema version does not exist."""


class SerDesNotFoundError(NotFoundError):
    """Serializer or deserializer descriptor does not exist."""


class BlobNotFoundError(NotFoundError):
    """No file is stored under the given file id."""


# Schema Exceptions
class InvalidSchemaError(RegistryError):
    """Schema text or metadata fails basic well-formedness checks.

    Raised when the candidate text cannot be parsed by its schema type
    provider, or when the declared schema type has no provider.
    """


class InvalidSchemaNameError(InvalidSchemaError):
    """Schema name is empty or contains filesystem-unsafe characters."""


class IncompatibleSchemaError(RegistryError):
    """Candidate schema fails compatibility evaluation.

    Attributes:
        schema_key: Key of the existing version the candidate was checked
            against when the check failed.
        direction: Direction that failed.
        messages: Provider-level reasons for the incompatibility.
    """

    def __init__(
        self,
        message: str,
        schema_key: SchemaKey | None = None,
        direction: CompatibilityDirection | None = None,
        messages: Sequence[str] = (),
        suggestions: list[str] | None = None,
    ):
        super().__init__(message, suggestions=suggestions)
        self.schema_key = schema_key
        self.direction = direction
        self.messages = tuple(messages)


class SchemaEvolutionError(IncompatibleSchemaError):
    """Schema metadata does not allow new versions (``evolve=False``)."""


class SchemaMetadataConflictError(RegistryError):
    """A metadata record with the same name but different content exists."""


class VersionConflictError(RegistryError):
    """A version slot was already taken when appending.

    Raised by schema stores when a conditional append loses a race or is
    not the next version in sequence.
    """


# SerDes Exceptions
class SerDesInstantiationError(RegistryError):
    """Serializer or deserializer instance could not be created.

    Raised when the class cannot be loaded from the uploaded file, is not
    assignable to the expected capability type, or fails to construct.
    """


class SerDesFileNotFoundError(SerDesInstantiationError, NotFoundError):
    """The file referenced by a SerDes descriptor is missing."""


# Infrastructure Exceptions
class RegistryConfigError(RegistryError):
    """Invalid registry configuration."""


class RegistryConnectionError(RegistryError):
    """Storage backend is invalid or inaccessible."""


class MissingDependencyError(RegistryError):
    """An optional dependency required by the requested backend is missing."""


class DependencyVersionError(RegistryError):
    """An optional dependency is installed but below the required version."""
