"""Compatibility evaluation of candidate schemas against a version history."""

from __future__ import annotations

import logging
from typing import Sequence

from .exceptions import IncompatibleSchemaError
from .models import (
    Compatibility,
    CompatibilityDirection,
    CompatibilityResult,
    SchemaMetadataInfo,
    SchemaVersionInfo,
)
from .providers import SchemaProvider

POLICY_DIRECTIONS: dict[Compatibility, tuple[CompatibilityDirection, ...]] = {
    Compatibility.NONE: (),
    Compatibility.BACKWARD: (CompatibilityDirection.BACKWARD,),
    Compatibility.FORWARD: (CompatibilityDirection.FORWARD,),
    Compatibility.BOTH: (CompatibilityDirection.BACKWARD, CompatibilityDirection.FORWARD),
    Compatibility.FULL: (CompatibilityDirection.BACKWARD, CompatibilityDirection.FORWARD),
}


class CompatibilityEvaluator:
    """Decide whether a candidate schema may be appended to a version history.

    ``BACKWARD``, ``FORWARD`` and ``BOTH`` are evaluated against the latest
    version only; ``FULL`` checks both directions against every version.
    The structural check itself is delegated to the schema type provider.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("yasr.compatibility")

    def evaluate(
        self,
        provider: SchemaProvider,
        metadata_info: SchemaMetadataInfo,
        versions: Sequence[SchemaVersionInfo],
        candidate_text: str,
    ) -> CompatibilityResult:
        """Evaluate ``candidate_text`` under the metadata's compatibility policy.

        Args:
            provider: Provider for the metadata's schema type.
            metadata_info: Stored metadata whose policy applies.
            versions: Existing versions, ascending by version number.
            candidate_text: Schema text of the candidate version.

        Returns:
            The verdict. An empty history is always compatible.
        """
        policy = metadata_info.metadata.compatibility
        if not versions or policy is Compatibility.NONE:
            return CompatibilityResult(compatible=True)

        targets = versions if policy is Compatibility.FULL else versions[-1:]
        return self._check(provider, targets, candidate_text, POLICY_DIRECTIONS[policy])

    def check_all_versions(
        self,
        provider: SchemaProvider,
        versions: Sequence[SchemaVersionInfo],
        candidate_text: str,
    ) -> CompatibilityResult:
        """Check both directions against every version, ignoring the policy."""
        return self._check(
            provider, versions, candidate_text, POLICY_DIRECTIONS[Compatibility.FULL]
        )

    def ensure_compatible(
        self,
        provider: SchemaProvider,
        metadata_info: SchemaMetadataInfo,
        versions: Sequence[SchemaVersionInfo],
        candidate_text: str,
    ) -> None:
        """Raise ``IncompatibleSchemaError`` if ``evaluate`` rejects the candidate."""
        result = self.evaluate(provider, metadata_info, versions, candidate_text)
        if result.compatible:
            return

        policy = metadata_info.metadata.compatibility.value
        direction = result.direction.value.lower() if result.direction else "unknown"
        raise IncompatibleSchemaError(
            f"Schema is not {direction} compatible with version "
            f"{result.schema_key.version if result.schema_key else '?'} of "
            f"'{metadata_info.name}' (policy {policy}): " + "; ".join(result.messages),
            schema_key=result.schema_key,
            direction=result.direction,
            messages=result.messages,
            suggestions=[
                "Add defaults for new fields or keep removed fields optional",
                "Use is_compatible_with_all_versions to test candidates first",
            ],
        )

    def _check(
        self,
        provider: SchemaProvider,
        targets: Sequence[SchemaVersionInfo],
        candidate_text: str,
        directions: Sequence[CompatibilityDirection],
    ) -> CompatibilityResult:
        for version in targets:
            for direction in directions:
                messages = provider.incompatibilities(
                    version.schema_text, candidate_text, direction
                )
                if messages:
                    self.logger.debug(
                        f"Candidate fails {direction.value} check against "
                        f"{version.schema_key}: {messages}"
                    )
                    return CompatibilityResult(
                        compatible=False,
                        schema_key=version.schema_key,
                        direction=direction,
                        messages=tuple(messages),
                    )
        return CompatibilityResult(compatible=True)
