"""Registry configuration.

Example:
    >>> from yasr.config import RegistryConfig
    >>> config = RegistryConfig.from_yaml("registry.yaml")

    with ``registry.yaml`` such as::

        store: filesystem
        store_path: s3://bucket/registry/schemas
        file_storage_path: s3://bucket/registry/files
        storage_options:
          profile: production
        cache_size: 512
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal, Mapping

import yaml

from .exceptions import RegistryConfigError


@dataclass(frozen=True)
class RegistryConfig:
    """Configuration used by ``SchemaRegistryClient.from_config``.

    Args:
        store: Schema store backend, "memory" or "filesystem".
        store_path: Base path or URL of the filesystem schema store. Required
            when ``store`` is "filesystem".
        file_storage_path: Base path or URL of the file (blob) storage. The
            default lives on fsspec's memory filesystem, which is global to
            the process: every client left on the default shares the same
            blobs, and uploads are kept until the process exits, even after
            ``close``. Set a real path for anything but tests.
        storage_options: Extra keyword arguments passed to fsspec for both
            the schema store and the file storage.
        cache_size: Maximum entries of the client-side lookup caches. 0
            disables caching.
    """

    store: Literal["memory", "filesystem"] = "memory"
    store_path: str | None = None
    file_storage_path: str = "memory://yasr/files"
    storage_options: Mapping[str, Any] = field(default_factory=dict)
    cache_size: int = 256

    def __post_init__(self) -> None:
        if self.store not in {"memory", "filesystem"}:
            raise RegistryConfigError("store must be one of 'memory' or 'filesystem'.")
        if self.store == "filesystem" and not self.store_path:
            raise RegistryConfigError(
                "store_path is required when store is 'filesystem'."
            )
        if not self.file_storage_path:
            raise RegistryConfigError("file_storage_path cannot be empty.")
        if not isinstance(self.cache_size, int) or self.cache_size < 0:
            raise RegistryConfigError("cache_size must be a non-negative integer.")
        object.__setattr__(
            self, "storage_options", MappingProxyType(dict(self.storage_options))
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RegistryConfig:
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise RegistryConfigError(
                f"Unknown registry config keys: {', '.join(sorted(unknown))}"
            )
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, path: str | Path, *, encoding: str = "utf-8") -> RegistryConfig:
        """Load a config from a YAML file."""
        text = Path(path).read_text(encoding=encoding)
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise RegistryConfigError(
                f"Registry config '{path}' did not parse to a dictionary."
            )
        return cls.from_dict(data)
