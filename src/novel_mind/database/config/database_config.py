"""Storage configuration management."""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from novel_mind.database.exceptions import StorageConfigurationError


class StorageEnvironment(Enum):
    """Storage environment types."""
    PRODUCTION = "production"
    TEST = "test"
    DEVELOPMENT = "development"


class StorageBackend(Enum):
    """Where novels are kept."""
    JSON = "json"
    MEMORY = "memory"


DEFAULT_DATA_DIRS = {
    StorageEnvironment.PRODUCTION: Path("data/novels"),
    StorageEnvironment.DEVELOPMENT: Path("data/dev_novels"),
    StorageEnvironment.TEST: Path("data/test_novels"),
}


@dataclass
class StorageConfig:
    """Key-value store configuration."""

    backend: StorageBackend = StorageBackend.JSON
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIRS[StorageEnvironment.PRODUCTION])
    environment: StorageEnvironment = StorageEnvironment.PRODUCTION

    @classmethod
    def from_environment(cls) -> "StorageConfig":
        """Create configuration from environment variables."""
        env_name = os.getenv("STORAGE_ENVIRONMENT", "production").lower()
        backend_name = os.getenv("STORAGE_BACKEND", "json").lower()

        try:
            environment = StorageEnvironment(env_name)
            backend = StorageBackend(backend_name)
        except ValueError as e:
            raise StorageConfigurationError(f"Invalid storage configuration: {e}") from e

        data_dir = os.getenv("STORAGE_DATA_DIR")
        return cls(
            backend=backend,
            data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIRS[environment],
            environment=environment,
        )

    @property
    def metadata_dir(self) -> Path:
        return self.data_dir / "metadata"

    @property
    def content_dir(self) -> Path:
        return self.data_dir / "content"
