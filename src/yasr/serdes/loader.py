"""Class-loading capability for uploaded serializer/deserializer files.

``ModuleClassLoader`` accepts two kinds of uploads:

- a zip archive of Python packages, where ``class_name`` is a dotted path
  such as ``"acme.serdes.avro.AvroSerializer"``. The archive is imported
  with ``zipimport`` through the regular import system, so its modules can
  import each other (``from acme.helpers import PREFIX``);
- a single Python source file, where only the final component of
  ``class_name`` is looked up in the module namespace.

Archive imports are serialized by a process-wide lock. While one runs, the
archive's top-level packages take precedence over installed modules of the
same name; once it finishes they are removed from ``sys.modules`` again and
any shadowed modules are restored. Imports that an archive module defers
until call time therefore do not resolve against the archive.

A single source file is executed in a fresh module object that is never
registered in ``sys.modules``.

Uploaded code runs with the privileges of the registry process.
"""

from __future__ import annotations

import importlib
import io
import logging
import os
import sys
import tempfile
import threading
import types
import zipfile
from abc import ABC, abstractmethod

from ..exceptions import SerDesInstantiationError

_IMPORT_LOCK = threading.Lock()


class BaseClassLoader(ABC):
    """Abstract base class for class-loading capabilities."""

    @abstractmethod
    def load(self, binary: bytes, class_name: str) -> type:
        """Load the class ``class_name`` from ``binary``.

        Raises:
            SerDesInstantiationError: If the binary cannot be loaded or does
                not define the class.
        """
        raise NotImplementedError


class ModuleClassLoader(BaseClassLoader):
    """Load classes from uploaded Python sources or zip archives of sources."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("yasr.serdes.loader")

    def load(self, binary: bytes, class_name: str) -> type:
        module_path, _, attr = class_name.rpartition(".")
        if not attr:
            raise SerDesInstantiationError(f"Invalid class name '{class_name}'")

        if zipfile.is_zipfile(io.BytesIO(binary)):
            if not module_path:
                raise SerDesInstantiationError(
                    f"Class name '{class_name}' must include its module path "
                    "when loading from an archive",
                    suggestions=["Use 'package.module.ClassName'"],
                )
            module = self._import_from_archive(binary, module_path)
        else:
            try:
                source = binary.decode("utf-8")
            except UnicodeDecodeError as e:
                raise SerDesInstantiationError(
                    "Uploaded file is neither a zip archive nor UTF-8 Python source"
                ) from e
            module = self._exec_module(
                module_path or "__uploaded__", source, f"<uploaded:{module_path or attr}>"
            )

        cls = getattr(module, attr, None)
        if not isinstance(cls, type):
            raise SerDesInstantiationError(
                f"Class '{class_name}' not found in uploaded file"
            )
        self.logger.debug(f"Loaded class {class_name} from {module.__file__}")
        return cls

    @staticmethod
    def _top_level_names(members: list[str]) -> set[str]:
        names: set[str] = set()
        for member in members:
            head, sep, _ = member.partition("/")
            if sep:
                names.add(head)
            elif head.endswith(".py"):
                names.add(head[: -len(".py")])
        return names

    def _import_from_archive(self, binary: bytes, module_path: str) -> types.ModuleType:
        with zipfile.ZipFile(io.BytesIO(binary)) as archive:
            top_level = self._top_level_names(archive.namelist())
        if module_path.split(".", 1)[0] not in top_level:
            raise SerDesInstantiationError(
                f"Module '{module_path}' not found in uploaded archive"
            )

        with tempfile.TemporaryDirectory(prefix="yasr-serdes-") as tmp:
            archive_path = os.path.join(tmp, "serdes.zip")
            with open(archive_path, "wb") as f:
                f.write(binary)
            with _IMPORT_LOCK:
                return self._import_with_path(archive_path, module_path, top_level)

    @staticmethod
    def _import_with_path(
        archive_path: str, module_path: str, top_level: set[str]
    ) -> types.ModuleType:
        def owned(name: str) -> bool:
            return name.split(".", 1)[0] in top_level

        shadowed = {
            name: sys.modules.pop(name) for name in list(sys.modules) if owned(name)
        }
        sys.path.insert(0, archive_path)
        importlib.invalidate_caches()
        try:
            return importlib.import_module(module_path)
        except ModuleNotFoundError as e:
            if e.name is not None and f"{module_path}.".startswith(f"{e.name}."):
                raise SerDesInstantiationError(
                    f"Module '{module_path}' not found in uploaded archive"
                ) from e
            raise SerDesInstantiationError(
                f"Failed to load module '{module_path}' from uploaded archive: {e}"
            ) from e
        except Exception as e:
            raise SerDesInstantiationError(
                f"Failed to load module '{module_path}' from uploaded archive: {e}"
            ) from e
        finally:
            sys.path.remove(archive_path)
            sys.path_importer_cache.pop(archive_path, None)
            for name in [name for name in sys.modules if owned(name)]:
                del sys.modules[name]
            sys.modules.update(shadowed)

    @staticmethod
    def _exec_module(name: str, source: str, filename: str) -> types.ModuleType:
        module = types.ModuleType(name)
        module.__file__ = filename
        try:
            code = compile(source, filename, "exec")
            exec(code, module.__dict__)
        except Exception as e:
            raise SerDesInstantiationError(
                f"Failed to load module '{name}' from uploaded file: {e}"
            ) from e
        return module
