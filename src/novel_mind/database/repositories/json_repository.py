"""JSON file repository implementation."""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from novel_mind.database.exceptions import (
    StorageConfigurationError,
    StorageReadError,
    StorageWriteError,
)
from novel_mind.database.interfaces.repository_interface import KeyValueRepository

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileRepository(KeyValueRepository[T], Generic[T]):
    """
    Stores one JSON document per key in a directory.

    Writes go to a temporary file that replaces the target, so a failed
    write never leaves a half-written document behind.
    """

    def __init__(self, directory: Path, entity_class: type[T]):
        """
        Initialize the repository.

        Args:
            directory: Directory holding the documents (created if missing)
            entity_class: Pydantic model stored in this repository
        """
        self.directory = Path(directory)
        self.entity_class = entity_class
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageConfigurationError(
                f"Cannot create storage directory {self.directory}: {e}", e
            ) from e

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> T | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return self.entity_class.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.error(f"Failed to read {self.entity_class.__name__} {key}: {e}")
            raise StorageReadError(f"Failed to read {path}", e) from e

    def put(self, key: str, entity: T) -> None:
        path = self._path(key)
        payload = entity.model_dump_json(by_alias=True)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error(f"Failed to write {self.entity_class.__name__} {key}: {e}")
            raise StorageWriteError(f"Failed to write {path}", e) from e

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageWriteError(f"Failed to delete {path}", e) from e

    def list_all(self) -> list[T]:
        return [
            entity
            for entity in (self.get(path.stem) for path in sorted(self.directory.glob("*.json")))
            if entity is not None
        ]

    def exists(self, key: str) -> bool:
        return self._path(key).exists()
