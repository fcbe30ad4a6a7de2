"""Base interface for schema type providers.

A provider supplies everything that depends on the schema type: parsing and
well-formedness checks, the canonical form used for fingerprinting, and the
directional compatibility predicate used by the compatibility evaluator.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from typing import Any

from ..models import CompatibilityDirection


class SchemaProvider(ABC):
    """Abstract base class for schema type providers.

    Subclasses set ``type`` to the schema type name stored in
    ``SchemaMetadata.type`` and implement ``parse``, ``canonical_form`` and
    ``reader_incompatibilities``.
    """

    type: str = ""

    @abstractmethod
    def parse(self, schema_text: str) -> Any:
        """Parse schema text into the provider's internal representation.

        Raises:
            InvalidSchemaError: If the text is not a well-formed schema.
        """
        ...

    @abstractmethod
    def canonical_form(self, parsed: Any) -> str:
        """Render a parsed schema in a canonical, whitespace-independent form."""
        ...

    @abstractmethod
    def reader_incompatibilities(self, reader: Any, writer: Any) -> list[str]:
        """List the reasons why ``reader`` cannot read data written with ``writer``.

        An empty list means the reader schema can read the writer's data.
        """
        ...

    def fingerprint(self, schema_text: str) -> str:
        """Return the sha256 hex digest of the canonical form of ``schema_text``."""
        canonical = self.canonical_form(self.parse(schema_text))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def incompatibilities(
        self,
        old_text: str,
        new_text: str,
        direction: CompatibilityDirection,
    ) -> list[str]:
        """Check one direction between an existing schema and a candidate.

        ``BACKWARD`` means the new schema must read data written with the old
        one; ``FORWARD`` means the old schema must read data written with the
        new one.
        """
        old, new = self.parse(old_text), self.parse(new_text)
        if direction is CompatibilityDirection.BACKWARD:
            return self.reader_incompatibilities(reader=new, writer=old)
        return self.reader_incompatibilities(reader=old, writer=new)

    def is_compatible(
        self,
        old_text: str,
        new_text: str,
        direction: CompatibilityDirection,
    ) -> bool:
        return not self.incompatibilities(old_text, new_text, direction)
