"""Storage configuration module."""

from .database_config import StorageBackend, StorageConfig, StorageEnvironment

__all__ = ["StorageConfig", "StorageBackend", "StorageEnvironment"]
