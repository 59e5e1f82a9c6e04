"""Novel-specific storage operations."""

import logging
import time
import uuid

from pydantic import ValidationError

from novel_mind.data_models.entities import (
    AnalysisSettings,
    Chunk,
    GlobalGraph,
    NovelBackup,
    NovelData,
    NovelMetadata,
)
from novel_mind.database.config.database_config import StorageBackend, StorageConfig
from novel_mind.database.exceptions import BackupFormatError, EntityNotFoundError
from novel_mind.database.interfaces.repository_interface import KeyValueRepository
from novel_mind.database.repositories.json_repository import JsonFileRepository
from novel_mind.database.repositories.memory_repository import InMemoryRepository

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1


def _now_ms() -> int:
    return int(time.time() * 1000)


class NovelRepositoryManager:
    """
    Manager that coordinates the metadata and content stores of the library.

    Metadata (small, listed often) and content (full text, chunks, graph) are
    kept in separate stores under the same novel id.
    """

    def __init__(
        self,
        config: StorageConfig | None = None,
        metadata_repository: KeyValueRepository[NovelMetadata] | None = None,
        data_repository: KeyValueRepository[NovelData] | None = None,
    ):
        """
        Initialize the repository manager.

        Args:
            config: Storage configuration. If None, loads from environment.
                Ignored for any store passed explicitly.
            metadata_repository: Store for NovelMetadata
            data_repository: Store for NovelData
        """
        if metadata_repository is None or data_repository is None:
            config = config or StorageConfig.from_environment()
        self.config = config

        self.metadata = metadata_repository or self._create_repository(
            NovelMetadata, "metadata"
        )
        self.data = data_repository or self._create_repository(NovelData, "content")

    def _create_repository(self, entity_class, kind: str):
        if self.config.backend == StorageBackend.MEMORY:
            return InMemoryRepository()
        directory = (
            self.config.metadata_dir if kind == "metadata" else self.config.content_dir
        )
        logger.info(f"Using JSON {kind} store at {directory}")
        return JsonFileRepository(directory, entity_class)

    @classmethod
    def in_memory(cls) -> "NovelRepositoryManager":
        """Create a manager backed by in-memory stores."""
        return cls(
            metadata_repository=InMemoryRepository(),
            data_repository=InMemoryRepository(),
        )

    def save_new_novel(
        self,
        title: str,
        content: str,
        chunks: list[Chunk],
        settings: AnalysisSettings,
    ) -> str:
        """
        Store a freshly imported novel with an empty graph.

        Returns:
            The new novel id
        """
        novel_id = str(uuid.uuid4())
        metadata = NovelMetadata(
            id=novel_id,
            title=title,
            total_characters=len(content),
            chunk_count=len(chunks),
            settings=settings,
        )
        data = NovelData(
            id=novel_id, content=content, chunks=chunks, global_graph=GlobalGraph()
        )
        self.data.put(novel_id, data)
        self.metadata.put(novel_id, metadata)
        logger.info(f"Saved novel '{title}' as {novel_id} ({len(chunks)} chunks)")
        return novel_id

    def list_novels(self) -> list[NovelMetadata]:
        """List library entries, most recently updated first."""
        return sorted(
            self.metadata.list_all(), key=lambda meta: meta.last_updated, reverse=True
        )

    def load_novel(self, novel_id: str) -> tuple[NovelMetadata, NovelData]:
        """
        Load metadata and content of a novel.

        Raises:
            EntityNotFoundError: If either part is missing
        """
        metadata = self.metadata.get(novel_id)
        data = self.data.get(novel_id)
        if metadata is None or data is None:
            raise EntityNotFoundError(novel_id, "Novel")
        return metadata, data

    def update_novel_chunks(
        self,
        novel_id: str,
        chunks: list[Chunk],
        analyzed_count: int,
        global_graph: GlobalGraph | None = None,
    ) -> None:
        """
        Persist the chunk list (and graph) and refresh the library counters.

        Raises:
            EntityNotFoundError: If the novel does not exist
        """
        metadata, data = self.load_novel(novel_id)

        update = {"chunks": chunks}
        if global_graph is not None:
            update["global_graph"] = global_graph
        self.data.put(novel_id, data.model_copy(update=update))

        self.metadata.put(
            novel_id,
            metadata.model_copy(
                update={
                    "analyzed_chunk_count": analyzed_count,
                    "chunk_count": len(chunks),
                    "last_updated": _now_ms(),
                }
            ),
        )
        logger.debug(
            f"Persisted {len(chunks)} chunks for {novel_id} ({analyzed_count} analyzed)"
        )

    def update_novel_progress(self, novel_id: str, current_chunk_index: int) -> None:
        """Persist the reading position."""
        metadata = self.metadata.get(novel_id)
        if metadata is None:
            raise EntityNotFoundError(novel_id, "Novel")
        self.metadata.put(
            novel_id,
            metadata.model_copy(
                update={
                    "current_chunk_index": current_chunk_index,
                    "last_updated": _now_ms(),
                }
            ),
        )

    def update_novel_settings(self, novel_id: str, settings: AnalysisSettings) -> None:
        """Persist the analysis settings of a novel."""
        metadata = self.metadata.get(novel_id)
        if metadata is None:
            raise EntityNotFoundError(novel_id, "Novel")
        self.metadata.put(novel_id, metadata.model_copy(update={"settings": settings}))

    def delete_novel(self, novel_id: str) -> bool:
        """Delete both parts of a novel. Returns False if nothing was stored."""
        deleted_meta = self.metadata.delete(novel_id)
        deleted_data = self.data.delete(novel_id)
        if deleted_meta or deleted_data:
            logger.info(f"Deleted novel {novel_id}")
        return deleted_meta or deleted_data

    def export_backup(self, novel_id: str) -> str:
        """Serialize a novel (metadata and content) to a JSON backup string."""
        metadata, data = self.load_novel(novel_id)
        backup = NovelBackup(metadata=metadata, data=data, version=BACKUP_VERSION)
        return backup.model_dump_json(by_alias=True)

    def import_backup(self, payload: str) -> str:
        """
        Import a JSON backup as a new novel.

        A new id and timestamp are assigned so importing the same backup twice
        yields two independent novels.

        Returns:
            The new novel id

        Raises:
            BackupFormatError: If the payload is not a valid backup
        """
        try:
            backup = NovelBackup.model_validate_json(payload)
        except ValidationError as e:
            raise BackupFormatError("Invalid backup format", e) from e

        new_id = str(uuid.uuid4())
        metadata = backup.metadata.model_copy(
            update={"id": new_id, "last_updated": _now_ms()}
        )
        data = backup.data.model_copy(update={"id": new_id})
        self.data.put(new_id, data)
        self.metadata.put(new_id, metadata)
        logger.info(f"Imported backup of '{metadata.title}' as {new_id}")
        return new_id
