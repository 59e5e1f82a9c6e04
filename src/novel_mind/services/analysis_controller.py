"""Background controllers that walk a novel's chunks in order."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from novel_mind.config.pipeline_config import PipelineConfig
from novel_mind.data_models.entities import (
    Chunk,
    ChunkAnalysis,
    NovelState,
)
from novel_mind.database.exceptions import PersistenceError
from novel_mind.llm.exceptions import LLMError
from novel_mind.llm.interfaces.llm_interface import AnalysisInterface
from novel_mind.services.graph_service import merge_relationships

logger = logging.getLogger(__name__)

PersistCallback = Callable[[NovelState], Awaitable[None]]


class ControllerState(str, Enum):
    """Lifecycle of a controller."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class RunStatus(str, Enum):
    """How a run ended."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    NOTHING_TO_DO = "nothing_to_do"
    SUPERSEDED = "superseded"  # chunk list was replaced during the run


class AnalysisInProgressError(Exception):
    """Raised when a run is requested while another one is active."""

    pass


@dataclass
class ChunkFailure:
    """Position and reason of a chunk that could not be processed."""

    ordinal: int  # 1-based position in the chunk list
    title: str
    reason: str


@dataclass
class AnalysisRunReport:
    """Outcome of one controller run."""

    status: RunStatus
    processed: int = 0
    failure: ChunkFailure | None = None
    skipped: list[ChunkFailure] = field(default_factory=list)


class CancellationToken:
    """Cooperative cancellation flag, polled between chunks."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def can_analyze(chunks: list[Chunk], index: int) -> bool:
    """A chunk may be analyzed only if it is first or its predecessor is analyzed."""
    if index < 0 or index >= len(chunks):
        return False
    return index == 0 or chunks[index - 1].is_analyzed


def find_resume_point(chunks: list[Chunk]) -> tuple[int | None, str]:
    """
    Locate where a sequential run should continue.

    Returns:
        (index of the first unanalyzed chunk or None when all are analyzed,
        summary of the last analyzed chunk before it or "")
    """
    running_summary = ""
    for index, chunk in enumerate(chunks):
        if not chunk.is_analyzed:
            return index, running_summary
        running_summary = chunk.analysis.summary
    return None, running_summary


def preserve_outlines(chunk: Chunk, result: ChunkAnalysis) -> ChunkAnalysis:
    """Carry over outlines generated earlier when the new result has none."""
    if chunk.has_outlines and not result.chapter_outlines:
        return result.model_copy(update={"chapter_outlines": chunk.analysis.chapter_outlines})
    return result


async def commit_chunk_analysis(
    novel: NovelState,
    index: int,
    analysis: ChunkAnalysis,
    persist: PersistCallback,
    merge_graph: bool = True,
) -> None:
    """
    Attach an analysis to a chunk and save it.

    The updated chunk list and graph are persisted first and only applied to
    the in-memory state once the save succeeded.

    Raises:
        PersistenceError: If saving fails; the state is left unchanged
    """
    chunks = list(novel.chunks)
    chunks[index] = chunks[index].model_copy(update={"analysis": analysis})
    graph = (
        merge_relationships(novel.global_graph, analysis.relationships)
        if merge_graph
        else novel.global_graph
    )
    await persist(novel.model_copy(update={"chunks": chunks, "global_graph": graph}))
    novel.chunks = chunks
    novel.global_graph = graph


class _ChunkController(ABC):
    """Shared run bookkeeping: state machine, cancellation, persistence."""

    def __init__(
        self,
        provider: AnalysisInterface,
        persist: PersistCallback,
        pipeline_config: PipelineConfig | None = None,
    ):
        self.provider = provider
        self.persist = persist
        self.pipeline_config = pipeline_config or PipelineConfig()
        self.state = ControllerState.IDLE
        self._token: CancellationToken | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self.state == ControllerState.RUNNING

    async def run(
        self, novel: NovelState, token: CancellationToken | None = None
    ) -> AnalysisRunReport:
        """
        Process the novel's chunks and wait for the run to end.

        Args:
            novel: Open novel; its chunks and graph are updated in place
            token: Cancellation token. A new one is created when None; use
                stop() to cancel it.

        Raises:
            AnalysisInProgressError: If this controller is already running
        """
        token = self._begin(token)
        return await self._execute(novel, token)

    def start(
        self, novel: NovelState, token: CancellationToken | None = None
    ) -> asyncio.Task:
        """
        Start a run in the background. The controller is marked running
        before this returns, so a second start() fails immediately.

        Raises:
            AnalysisInProgressError: If this controller is already running
        """
        token = self._begin(token)
        self._task = asyncio.create_task(self._execute(novel, token))
        return self._task

    def stop(self) -> None:
        """Request cancellation; honored before the next chunk starts."""
        if self._token is not None:
            self._token.cancel()

    async def wait(self) -> AnalysisRunReport | None:
        """Wait for a background run started with start()."""
        if self._task is None:
            return None
        task = self._task
        try:
            return await task
        finally:
            if self._task is task:
                self._task = None

    def _begin(self, token: CancellationToken | None) -> CancellationToken:
        if self.is_running:
            raise AnalysisInProgressError(f"{type(self).__name__} is already running")
        self.state = ControllerState.RUNNING
        self._token = token or CancellationToken()
        return self._token

    async def _execute(
        self, novel: NovelState, token: CancellationToken
    ) -> AnalysisRunReport:
        report = AnalysisRunReport(status=RunStatus.COMPLETED)
        try:
            await self._run(novel, token, report)
        except BaseException:
            self.state = ControllerState.STOPPED
            raise
        else:
            stopped = report.status in (RunStatus.FAILED, RunStatus.SUPERSEDED)
            self.state = ControllerState.STOPPED if stopped else ControllerState.IDLE
        finally:
            self._token = None
        return report

    @abstractmethod
    async def _run(
        self, novel: NovelState, token: CancellationToken, report: AnalysisRunReport
    ) -> None:
        """Process chunks, recording the outcome in the report."""
        pass


class SequentialAnalysisController(_ChunkController):
    """
    Analyzes chunks strictly in order, carrying a running summary.

    Each chunk's prompt is conditioned on the summary of the previous chunk,
    so chunk i+1 is never analyzed before chunk i has a result. A failed
    chunk gets one more attempt after a cooldown; if that fails too the run
    stops at that chunk.
    """

    async def _run(
        self, novel: NovelState, token: CancellationToken, report: AnalysisRunReport
    ) -> None:
        start, running_summary = find_resume_point(novel.chunks)
        if start is None:
            logger.info(f"All {len(novel.chunks)} chunks of '{novel.title}' already analyzed")
            report.status = RunStatus.NOTHING_TO_DO
            return

        version = novel.version
        logger.info(
            f"Starting sequential analysis of '{novel.title}' at chunk {start + 1}/{len(novel.chunks)}"
        )

        for index in range(start, len(novel.chunks)):
            if token.cancelled:
                logger.info(f"Analysis cancelled before chunk {index + 1}")
                report.status = RunStatus.CANCELLED
                return
            if novel.version != version:
                report.status = RunStatus.SUPERSEDED
                return

            chunk = novel.chunks[index]
            result = await self._analyze_with_retry(chunk, index, novel, running_summary, token, report)
            if result is None:
                return

            if novel.version != version:
                logger.warning(f"Chunk list changed while analyzing chunk {index + 1}, discarding result")
                report.status = RunStatus.SUPERSEDED
                return

            try:
                await commit_chunk_analysis(
                    novel, index, preserve_outlines(chunk, result), self.persist
                )
            except PersistenceError as e:
                logger.error(f"Failed to save analysis of chunk {index + 1}: {e}")
                report.status = RunStatus.FAILED
                report.failure = ChunkFailure(index + 1, chunk.title, f"Save failed: {e}")
                return

            running_summary = result.summary
            report.processed += 1
            logger.info(f"Analyzed chunk {index + 1}/{len(novel.chunks)}: {chunk.title}")
            await asyncio.sleep(self.pipeline_config.pacing_delay)

        logger.info(f"Sequential analysis of '{novel.title}' finished ({report.processed} chunks)")

    async def _analyze_with_retry(
        self,
        chunk: Chunk,
        index: int,
        novel: NovelState,
        running_summary: str,
        token: CancellationToken,
        report: AnalysisRunReport,
    ) -> ChunkAnalysis | None:
        """Analyze a chunk, retrying once after a cooldown. None ends the run."""
        try:
            return await self.provider.analyze_chunk(chunk.content, novel.settings, running_summary)
        except LLMError as e:
            logger.error(f"Error analyzing chunk {index + 1} ({chunk.title}): {e}")

        if not token.cancelled:
            await asyncio.sleep(self.pipeline_config.retry_cooldown)
        if token.cancelled:
            report.status = RunStatus.CANCELLED
            return None

        try:
            return await self.provider.analyze_chunk(chunk.content, novel.settings, running_summary)
        except LLMError as e:
            logger.error(f"Analysis stopped at chunk {index + 1} ({chunk.title}): {e}")
            report.status = RunStatus.FAILED
            report.failure = ChunkFailure(index + 1, chunk.title, str(e))
            return None


class OutlineController(_ChunkController):
    """
    Generates chapter outlines chunk by chunk.

    Outlines do not depend on earlier chunks, so a failed chunk is logged and
    skipped. Chunks that already carry outlines are left alone.
    """

    async def _run(
        self, novel: NovelState, token: CancellationToken, report: AnalysisRunReport
    ) -> None:
        version = novel.version
        for index in range(len(novel.chunks)):
            if token.cancelled:
                logger.info(f"Outlining cancelled before chunk {index + 1}")
                report.status = RunStatus.CANCELLED
                return
            if novel.version != version:
                report.status = RunStatus.SUPERSEDED
                return

            chunk = novel.chunks[index]
            if chunk.has_outlines:
                continue

            try:
                outlines = await self.provider.generate_outlines(chunk.content, novel.settings, chunk.title)
            except LLMError as e:
                logger.error(f"Outlining failed for chunk {index + 1} ({chunk.title}): {e}")
                report.skipped.append(ChunkFailure(index + 1, chunk.title, str(e)))
                continue

            if not outlines:
                continue
            if novel.version != version:
                report.status = RunStatus.SUPERSEDED
                return

            current = novel.chunks[index].analysis
            if current is not None:
                analysis = current.model_copy(update={"chapter_outlines": outlines})
            else:
                analysis = ChunkAnalysis.outline_placeholder(outlines)

            try:
                await commit_chunk_analysis(
                    novel, index, analysis, self.persist, merge_graph=False
                )
            except PersistenceError as e:
                logger.error(f"Failed to save outlines of chunk {index + 1}: {e}")
                report.status = RunStatus.FAILED
                report.failure = ChunkFailure(index + 1, chunk.title, f"Save failed: {e}")
                return

            report.processed += 1
            await asyncio.sleep(self.pipeline_config.pacing_delay)

        logger.info(f"Outlining of '{novel.title}' finished ({report.processed} chunks)")
