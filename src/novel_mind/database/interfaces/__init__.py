"""Storage interfaces for the novel analysis project."""

from .repository_interface import KeyValueRepository

__all__ = ["KeyValueRepository"]
