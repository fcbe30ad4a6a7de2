"""Creation of serializer/deserializer instances from stored descriptors."""

from __future__ import annotations

import logging
from typing import TypeVar

from ..exceptions import (
    BlobNotFoundError,
    SerDesFileNotFoundError,
    SerDesInstantiationError,
)
from ..files import BaseFileStorage
from ..models import SerDesInfo
from .loader import BaseClassLoader, ModuleClassLoader

T = TypeVar("T")


class SerDesInstantiator:
    """Build runtime instances from SerDes descriptors.

    The descriptor's file is downloaded, the class is loaded through the
    class loader, checked against the expected capability type and
    constructed without arguments. Instances are never cached.
    """

    def __init__(
        self,
        file_storage: BaseFileStorage,
        class_loader: BaseClassLoader | None = None,
        logger: logging.Logger | None = None,
    ):
        self.file_storage = file_storage
        self.class_loader = class_loader or ModuleClassLoader()
        self.logger = logger or logging.getLogger("yasr.serdes")

    def create(self, info: SerDesInfo, expected_type: type[T]) -> T:
        """Instantiate the class described by ``info``.

        Raises:
            SerDesFileNotFoundError: If the descriptor's file is missing.
            SerDesInstantiationError: If the class cannot be loaded, is not a
                subclass of ``expected_type`` or fails to construct.
        """
        try:
            stream = self.file_storage.download(info.file_id)
        except BlobNotFoundError as e:
            raise SerDesFileNotFoundError(
                f"File '{info.file_id}' of SerDes '{info.name}' not found",
                suggestions=["Upload the file and add a new descriptor"],
            ) from e
        with stream:
            binary = stream.read()

        cls = self.class_loader.load(binary, info.class_name)
        if not issubclass(cls, expected_type):
            raise SerDesInstantiationError(
                f"Class '{info.class_name}' of SerDes '{info.name}' is not a "
                f"{expected_type.__name__}"
            )

        try:
            instance = cls()
        except Exception as e:
            raise SerDesInstantiationError(
                f"Failed to construct '{info.class_name}' of SerDes '{info.name}': {e}"
            ) from e

        self.logger.debug(f"Created {expected_type.__name__} instance of {info.class_name}")
        return instance
