"""
Pytest configuration shared by the test modules.

Provides a scripted analysis provider, in-memory storage and a pipeline
config without delays so controller tests run instantly.
"""

import asyncio

import pytest

from novel_mind.config.pipeline_config import PipelineConfig
from novel_mind.data_models.entities import (
    AnalysisSettings,
    ChapterOutline,
    Chunk,
    ChunkAnalysis,
    Relationship,
)
from novel_mind.database.repositories import NovelRepositoryManager
from novel_mind.llm.exceptions import LLMServerError
from novel_mind.llm.interfaces.llm_interface import AnalysisInterface


class FakeAnalysisProvider(AnalysisInterface):
    """
    Deterministic provider.

    The summary of a chunk is "summary:<first line of its content>". Failures
    and relationships are keyed by a substring of the chunk content. Setting
    `gate` holds analysis calls until the event is set.
    """

    def __init__(self):
        self.analyze_calls: list[tuple[str, str]] = []
        self.outline_calls: list[str] = []
        self.question_calls: list[tuple[str, str, str]] = []
        self.failures: dict[str, int] = {}
        self.outline_failures: set[str] = set()
        self.relationships: dict[str, list[Relationship]] = {}
        self.on_analyze = None
        self.gate: asyncio.Event | None = None

    def fail(self, marker: str, times: int = 1) -> None:
        self.failures[marker] = times

    def _pending_failure(self, text: str) -> str | None:
        for marker, remaining in self.failures.items():
            if marker in text and remaining > 0:
                self.failures[marker] = remaining - 1
                return marker
        return None

    async def analyze_chunk(self, text, settings, previous_summary=""):
        self.analyze_calls.append((text, previous_summary))
        if self.on_analyze is not None:
            self.on_analyze(len(self.analyze_calls))
        if self.gate is not None:
            await self.gate.wait()
        marker = self._pending_failure(text)
        if marker is not None:
            raise LLMServerError(f"provider overloaded on {marker}")
        relationships = [
            rel
            for marker, rels in self.relationships.items()
            if marker in text
            for rel in rels
        ]
        return ChunkAnalysis(
            summary=f"summary:{text.splitlines()[0]}",
            sentiment_score=0.1,
            relationships=relationships,
        )

    async def generate_outlines(self, text, settings, title=""):
        self.outline_calls.append(title)
        if any(marker in text for marker in self.outline_failures):
            raise LLMServerError(f"outline failed for {title}")
        return [ChapterOutline(title=title, summary=f"outline of {title}")]

    async def answer_question(self, question, chunk_text, settings, previous_summary=""):
        self.question_calls.append((question, chunk_text, previous_summary))
        return f"answer to {question}"


def make_chunks(*contents: str) -> list[Chunk]:
    """Build adjacent chunks over the given contents."""
    chunks = []
    offset = 0
    for index, content in enumerate(contents):
        chunks.append(
            Chunk(
                id=index,
                title=f"Chunk {index + 1}",
                content=content,
                start_index=offset,
                end_index=offset + len(content),
            )
        )
        offset += len(content)
    return chunks


@pytest.fixture
def provider() -> FakeAnalysisProvider:
    return FakeAnalysisProvider()


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        pacing_delay=0,
        retry_cooldown=0,
        max_attempts=2,
        backoff_base_delay=0,
        outline_concurrency=2,
    )


@pytest.fixture
def repository_manager() -> NovelRepositoryManager:
    return NovelRepositoryManager.in_memory()


@pytest.fixture
def settings() -> AnalysisSettings:
    return AnalysisSettings(target_chunk_size=50)


@pytest.fixture
def chunk_factory():
    return make_chunks
