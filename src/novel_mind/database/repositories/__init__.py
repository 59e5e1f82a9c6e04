"""Repository implementations."""

from .json_repository import JsonFileRepository
from .memory_repository import InMemoryRepository
from .novel_repository import NovelRepositoryManager

__all__ = [
    "JsonFileRepository",
    "InMemoryRepository",
    "NovelRepositoryManager",
]
