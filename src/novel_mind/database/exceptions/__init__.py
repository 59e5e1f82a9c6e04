"""Persistence exceptions module."""

from .database_exceptions import (
    BackupFormatError,
    EntityNotFoundError,
    PersistenceError,
    StorageConfigurationError,
    StorageReadError,
    StorageWriteError,
)

__all__ = [
    "PersistenceError",
    "EntityNotFoundError",
    "StorageReadError",
    "StorageWriteError",
    "BackupFormatError",
    "StorageConfigurationError",
]
