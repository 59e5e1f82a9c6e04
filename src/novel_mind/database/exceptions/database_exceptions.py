"""Custom exceptions for persistence operations."""


class PersistenceError(Exception):
    """Base exception for all storage-related errors."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class EntityNotFoundError(PersistenceError):
    """Raised when a requested entity is not found."""

    def __init__(self, entity_id: str, entity_type: str | None = None):
        self.entity_id = entity_id
        self.entity_type = entity_type
        message = f"Entity with ID '{entity_id}' not found"
        if entity_type:
            message = f"{entity_type} with ID '{entity_id}' not found"
        super().__init__(message)


class StorageWriteError(PersistenceError):
    """Raised when writing or deleting a stored document fails."""

    pass


class StorageReadError(PersistenceError):
    """Raised when a stored document cannot be read or decoded."""

    pass


class BackupFormatError(PersistenceError):
    """Raised when an imported backup is not a valid novel backup."""

    pass


class StorageConfigurationError(PersistenceError):
    """Raised when storage configuration is invalid."""

    pass
