from __future__ import annotations


class StorageDriverError(Exception):
    """Base class for storage driver level exceptions."""


class PathNotFoundError(StorageDriverError):
    """Raised when no object or session exists at a path."""

    def __init__(self, path: str):
        super().__init__(f"Path not found: {path}")
        self.path = path


class InvalidOffsetError(StorageDriverError):
    """Raised when a read or resumed write uses an unusable offset."""

    def __init__(self, path: str, offset: int):
        super().__init__(f"Invalid offset: {offset} for path: {path}")
        self.path = path
        self.offset = offset


class DriverConfigurationError(StorageDriverError):
    """Raised when driver construction parameters are missing or invalid."""


class UnknownDriverError(StorageDriverError):
    """Raised when no constructor is registered under a driver name."""

    def __init__(self, name: str):
        super().__init__(f"StorageDriver not registered: {name}")
        self.name = name
