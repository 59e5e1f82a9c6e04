"""Service coordinating the novel library, segmentation and analysis."""

import asyncio
import logging

from langsmith import traceable

from novel_mind.config.pipeline_config import PipelineConfig
from novel_mind.data_models.entities import (
    AnalysisSettings,
    Chunk,
    ChunkAnalysis,
    NovelMetadata,
    NovelState,
)
from novel_mind.database.repositories import NovelRepositoryManager
from novel_mind.llm.interfaces.llm_interface import AnalysisInterface
from novel_mind.llm.providers import LangChainAnalysisProvider
from novel_mind.services.analysis_controller import (
    AnalysisInProgressError,
    OutlineController,
    SequentialAnalysisController,
    can_analyze,
    commit_chunk_analysis,
    preserve_outlines,
)
from novel_mind.services.export_service import render_outlines_markdown
from novel_mind.text_processing.text_processing import resegment, segment_text

logger = logging.getLogger(__name__)


class NovelService:
    """Application facade for importing, reading and analyzing novels."""

    def __init__(
        self,
        repository_manager: NovelRepositoryManager | None = None,
        provider: AnalysisInterface | None = None,
        pipeline_config: PipelineConfig | None = None,
        default_settings: AnalysisSettings | None = None,
    ):
        """
        Initialize the novel service.

        Args:
            repository_manager: Storage. If None, configured from environment.
            provider: Analysis provider. If None, a LangChain provider is used.
            pipeline_config: Timing settings. If None, loads from environment.
            default_settings: Settings given to newly imported novels
        """
        self.repository_manager = repository_manager or NovelRepositoryManager()
        self.pipeline_config = pipeline_config or PipelineConfig()
        self.provider = provider or LangChainAnalysisProvider(self.pipeline_config)
        self.default_settings = default_settings or AnalysisSettings()

        self.analysis_controller = SequentialAnalysisController(
            self.provider, self._persist_state, self.pipeline_config
        )
        self.outline_controller = OutlineController(
            self.provider, self._persist_state, self.pipeline_config
        )
        self._manual_lock = asyncio.Lock()
        self.novel: NovelState | None = None

    # Library

    def import_text(
        self, title: str, content: str, settings: AnalysisSettings | None = None
    ) -> NovelState:
        """Segment raw text, store it as a new novel and open it."""
        self._ensure_idle()
        settings = settings or self.default_settings
        chunks = segment_text(content, settings.target_chunk_size)
        novel_id = self.repository_manager.save_new_novel(
            title, content, chunks, settings
        )
        return self.open_novel(novel_id)

    def list_novels(self) -> list[NovelMetadata]:
        return self.repository_manager.list_novels()

    def open_novel(self, novel_id: str) -> NovelState:
        """Load a stored novel as the working state."""
        self._ensure_idle()
        metadata, data = self.repository_manager.load_novel(novel_id)
        self.novel = NovelState.from_storage(metadata, data)
        logger.info(
            f"Opened '{self.novel.title}' ({len(self.novel.chunks)} chunks, "
            f"{self.novel.analyzed_count} analyzed)"
        )
        return self.novel

    def close_novel(self) -> None:
        self._ensure_idle()
        self.novel = None

    def delete_novel(self, novel_id: str) -> bool:
        if self.novel is not None and self.novel.id == novel_id:
            self.close_novel()
        return self.repository_manager.delete_novel(novel_id)

    def export_backup(self, novel_id: str | None = None) -> str:
        """Serialize a novel (the open one by default) to a JSON backup."""
        return self.repository_manager.export_backup(
            novel_id or self._require_novel().id
        )

    def import_backup(self, payload: str) -> str:
        return self.repository_manager.import_backup(payload)

    # Reading

    def current_chunk(self) -> Chunk | None:
        novel = self._require_novel()
        if not novel.chunks:
            return None
        return novel.chunks[novel.current_chunk_index]

    def navigate(self, index: int) -> Chunk:
        """
        Move the reading position and persist it.

        Raises:
            ValueError: If the index is out of range
        """
        novel = self._require_novel()
        if not 0 <= index < len(novel.chunks):
            raise ValueError(
                f"Chunk index {index} out of range (0..{len(novel.chunks) - 1})"
            )
        novel.current_chunk_index = index
        self.repository_manager.update_novel_progress(novel.id, index)
        return novel.chunks[index]

    def can_analyze(self, index: int) -> bool:
        return can_analyze(self._require_novel().chunks, index)

    # Analysis

    @traceable(name="Novel Service: Analyze Chunk")
    async def analyze_chunk(self, index: int) -> ChunkAnalysis | None:
        """
        Analyze a single chunk on request.

        Returns None without calling the provider when the previous chunk has
        not been analyzed yet.

        Raises:
            AnalysisInProgressError: If a background run or another manual
                analysis is active
            LLMError: If the provider fails
            PersistenceError: If saving fails
        """
        novel = self._require_novel()
        self._ensure_idle()
        if not 0 <= index < len(novel.chunks):
            raise ValueError(f"Chunk index {index} out of range")
        if not can_analyze(novel.chunks, index):
            logger.warning(
                f"Chunk {index + 1} is locked until chunk {index} is analyzed"
            )
            return None

        previous_summary = novel.chunks[index - 1].analysis.summary if index > 0 else ""
        version = novel.version
        chunk = novel.chunks[index]
        # Acquiring a free lock does not yield, so the check above still holds
        async with self._manual_lock:
            result = await self.provider.analyze_chunk(
                chunk.content, novel.settings, previous_summary
            )
            if novel.version != version:
                logger.warning(
                    f"Chunk list changed while analyzing chunk {index + 1}, discarding result"
                )
                return None

            result = preserve_outlines(novel.chunks[index], result)
            await commit_chunk_analysis(novel, index, result, self._persist_state)
        return result

    def start_analysis(self) -> asyncio.Task:
        """Start the sequential full-book analysis in the background."""
        novel = self._require_novel()
        if self.outline_controller.is_running:
            raise AnalysisInProgressError("Outline generation is running")
        if self._manual_lock.locked():
            raise AnalysisInProgressError("A manual chunk analysis is running")
        return self.analysis_controller.start(novel)

    def start_outlining(self) -> asyncio.Task:
        """Start outline generation for all chunks in the background."""
        novel = self._require_novel()
        if self.analysis_controller.is_running:
            raise AnalysisInProgressError("Sequential analysis is running")
        if self._manual_lock.locked():
            raise AnalysisInProgressError("A manual chunk analysis is running")
        return self.outline_controller.start(novel)

    def stop(self) -> None:
        """Request cancellation of any background run."""
        self.analysis_controller.stop()
        self.outline_controller.stop()

    async def wait(self) -> None:
        """Wait for background runs to end."""
        await self.analysis_controller.wait()
        await self.outline_controller.wait()

    @property
    def is_busy(self) -> bool:
        return (
            self.analysis_controller.is_running
            or self.outline_controller.is_running
            or self._manual_lock.locked()
        )

    async def update_settings(self, settings: AnalysisSettings) -> NovelState:
        """
        Apply new analysis settings to the open novel.

        A changed target chunk size stops background runs and re-splits the
        unanalyzed part of the document. Analyzed chunks are kept.
        """
        novel = self._require_novel()
        resize = settings.target_chunk_size != novel.settings.target_chunk_size

        if resize and self.is_busy:
            logger.info("Stopping background analysis before resegmenting")
            self.stop()
            await self.wait()

        await asyncio.to_thread(
            self.repository_manager.update_novel_settings, novel.id, settings
        )
        novel.settings = settings

        if resize:
            chunks = resegment(novel.content, novel.chunks, settings.target_chunk_size)
            if chunks is not novel.chunks:
                await self._persist_state(novel.model_copy(update={"chunks": chunks}))
                novel.chunks = chunks
                novel.version += 1
                if novel.current_chunk_index >= len(chunks):
                    novel.current_chunk_index = max(len(chunks) - 1, 0)
                    await asyncio.to_thread(
                        self.repository_manager.update_novel_progress,
                        novel.id,
                        novel.current_chunk_index,
                    )
        return novel

    @traceable(name="Novel Service: Ask Question")
    async def ask_question(self, question: str) -> str:
        """
        Answer a question about the current chunk.

        The summary of the previous chunk, when analyzed, is given as context.

        Raises:
            ValueError: If the question is empty or there is no chunk
            LLMError: If the provider fails
        """
        if not question.strip():
            raise ValueError("Question must not be empty")
        novel = self._require_novel()
        chunk = self.current_chunk()
        if chunk is None:
            raise ValueError("The open novel has no chunks")

        index = novel.current_chunk_index
        previous_summary = ""
        if index > 0 and novel.chunks[index - 1].is_analyzed:
            previous_summary = novel.chunks[index - 1].analysis.summary
        return await self.provider.answer_question(
            question, chunk.content, novel.settings, previous_summary
        )

    def export_outlines_markdown(self) -> str:
        novel = self._require_novel()
        return render_outlines_markdown(novel.title, novel.chunks)

    # Internals

    async def _persist_state(self, state: NovelState) -> None:
        await asyncio.to_thread(
            self.repository_manager.update_novel_chunks,
            state.id,
            state.chunks,
            state.analyzed_count,
            state.global_graph,
        )

    def _require_novel(self) -> NovelState:
        if self.novel is None:
            raise ValueError("No novel is open")
        return self.novel

    def _ensure_idle(self) -> None:
        if self.is_busy:
            raise AnalysisInProgressError("A background analysis is running")
