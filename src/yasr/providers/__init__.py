"""Schema type providers.

Providers are selected by ``SchemaMetadata.type``. The registry ships with
an Avro provider; additional providers are passed to ``SchemaRegistry``.
"""

from __future__ import annotations

from typing import Iterable

from ..exceptions import RegistryConfigError
from .avro import AvroSchemaProvider
from .base import SchemaProvider

__all__ = [
    "AvroSchemaProvider",
    "SchemaProvider",
    "default_providers",
    "providers_by_type",
]


def default_providers() -> dict[str, SchemaProvider]:
    """Return a fresh mapping of the built-in providers keyed by schema type."""
    return providers_by_type([AvroSchemaProvider()])


def providers_by_type(providers: Iterable[SchemaProvider]) -> dict[str, SchemaProvider]:
    """Key providers by their ``type``, rejecting untyped or duplicate providers."""
    result: dict[str, SchemaProvider] = {}
    for provider in providers:
        if not provider.type:
            raise RegistryConfigError(
                f"{provider.__class__.__name__} does not declare a type"
            )
        if provider.type in result:
            raise RegistryConfigError(
                f"Duplicate schema provider for type '{provider.type}'"
            )
        result[provider.type] = provider
    return result
