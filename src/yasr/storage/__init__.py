"""Schema stores: metadata identity, version ledger and SerDes persistence."""

from .base import BaseSchemaStore
from .filesystem import FileSystemSchemaStore
from .memory import InMemorySchemaStore

__all__ = [
    "BaseSchemaStore",
    "FileSystemSchemaStore",
    "InMemorySchemaStore",
]
