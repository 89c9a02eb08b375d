"""Explicit driver registry.

Hosts build a registry at startup and construct drivers by name. Nothing is
registered at import time.
"""

from __future__ import annotations

from typing import Callable, Mapping

from blobdriver.storagedriver.base import StorageDriver
from blobdriver.storagedriver.errors import UnknownDriverError
from blobdriver.storagedriver.s3 import DRIVER_NAME, S3Driver

DriverConstructor = Callable[[Mapping[str, str]], StorageDriver]


class DriverRegistry:
    """Maps driver names to constructors taking a parameters mapping."""

    def __init__(self) -> None:
        self._constructors: dict[str, DriverConstructor] = {}

    def register(self, name: str, constructor: DriverConstructor) -> None:
        if not name:
            raise ValueError("Driver name must not be empty")
        if name in self._constructors:
            raise ValueError(f"Driver already registered: {name}")
        self._constructors[name] = constructor

    def create(self, name: str, parameters: Mapping[str, str]) -> StorageDriver:
        """Construct the driver registered under ``name``.

        Raises:
            UnknownDriverError: If no driver is registered under ``name``.
        """
        constructor = self._constructors.get(name)
        if constructor is None:
            raise UnknownDriverError(name)
        return constructor(parameters)

    def names(self) -> list[str]:
        return sorted(self._constructors)

    def __contains__(self, name: object) -> bool:
        return name in self._constructors


def build_registry() -> DriverRegistry:
    """Registry holding the drivers shipped with this package."""
    registry = DriverRegistry()
    registry.register(DRIVER_NAME, S3Driver.from_parameters)
    return registry
