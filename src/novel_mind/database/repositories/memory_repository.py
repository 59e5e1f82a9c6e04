"""In-process repository implementation."""

from typing import Generic, TypeVar

from pydantic import BaseModel

from novel_mind.database.interfaces.repository_interface import KeyValueRepository

T = TypeVar("T", bound=BaseModel)


class InMemoryRepository(KeyValueRepository[T], Generic[T]):
    """Keeps deep copies of entities in a dict; nothing survives the process."""

    def __init__(self):
        self._items: dict[str, T] = {}

    def get(self, key: str) -> T | None:
        item = self._items.get(key)
        return item.model_copy(deep=True) if item is not None else None

    def put(self, key: str, entity: T) -> None:
        self._items[key] = entity.model_copy(deep=True)

    def delete(self, key: str) -> bool:
        return self._items.pop(key, None) is not None

    def list_all(self) -> list[T]:
        return [item.model_copy(deep=True) for item in self._items.values()]

    def exists(self, key: str) -> bool:
        return key in self._items
