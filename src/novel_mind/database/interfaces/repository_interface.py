"""Base repository interface for key-value storage."""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

T = TypeVar("T")


class KeyValueRepository(ABC, Generic[T]):
    """
    Abstract base class for document storage keyed by id.

    Semantics are last-write-wins: ``put`` replaces whatever is stored under
    the key.
    """

    @abstractmethod
    def get(self, key: str) -> T | None:
        """
        Retrieve the entity stored under a key.

        Args:
            key: Document identifier

        Returns:
            The entity if found, None otherwise
        """
        pass

    @abstractmethod
    def put(self, key: str, entity: T) -> None:
        """
        Store an entity under a key, replacing any previous value.

        Args:
            key: Document identifier
            entity: The entity to store

        Raises:
            StorageWriteError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete the entity stored under a key.

        Args:
            key: Document identifier

        Returns:
            True if something was deleted, False if the key was absent
        """
        pass

    @abstractmethod
    def list_all(self) -> list[T]:
        """
        List every stored entity.

        Returns:
            List of entities
        """
        pass

    def exists(self, key: str) -> bool:
        """Check if an entity is stored under a key."""
        return self.get(key) is not None

    def count(self) -> int:
        """Count the stored entities."""
        return len(self.list_all())
