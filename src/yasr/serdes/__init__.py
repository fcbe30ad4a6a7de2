"""Serializer/deserializer capabilities, class loading and instantiation."""

from .base import Deserializer, SerDes, Serializer
from .instantiator import SerDesInstantiator
from .loader import BaseClassLoader, ModuleClassLoader

__all__ = [
    "BaseClassLoader",
    "Deserializer",
    "ModuleClassLoader",
    "SerDes",
    "SerDesInstantiator",
    "Serializer",
]
