"""Capability types for serializer and deserializer implementations.

Classes uploaded to the registry subclass ``Serializer`` or ``Deserializer``
and must be constructible without arguments; configuration is passed to
``init`` afterwards.

Example:
    >>> class JsonSerializer(Serializer):
    ...     def serialize(self, payload, schema_metadata):
    ...         return json.dumps(payload).encode()
    >>>
    >>> with client.create_serializer_instance(info) as serializer:
    ...     serializer.init({"compression": "none"})
    ...     data = serializer.serialize({"id": 1}, metadata)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, Mapping

from ..models import SchemaMetadata


class SerDes(ABC):
    """Shared lifecycle of serializers and deserializers."""

    def __init__(self) -> None:
        self.config: Mapping[str, Any] = MappingProxyType({})

    def init(self, config: Mapping[str, Any]) -> None:
        """Configure the instance before first use."""
        self.config = MappingProxyType(dict(config))

    def close(self) -> None:
        """Release resources held by the instance."""

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class Serializer(SerDes):
    """Turns payloads into bytes according to a registered schema."""

    @abstractmethod
    def serialize(self, payload: Any, schema_metadata: SchemaMetadata) -> bytes:
        ...


class Deserializer(SerDes):
    """Turns bytes back into payloads according to a registered schema."""

    @abstractmethod
    def deserialize(
        self,
        data: bytes,
        schema_metadata: SchemaMetadata,
        reader_version: int | None = None,
    ) -> Any:
        """Decode ``data``, optionally projecting onto ``reader_version``."""
        ...
