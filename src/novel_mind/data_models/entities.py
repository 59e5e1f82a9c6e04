"""Data models for the novel analysis application."""

import time
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

OUTLINE_PLACEHOLDER_SUMMARY = "Outline generated."


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys (the stored and model-facing shape)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CharacterProfile(CamelModel):
    """A character as seen in one chunk."""

    name: str
    role: str = ""
    traits: list[str] = Field(default_factory=list)


class Relationship(CamelModel):
    """Directed relation between two characters, extracted from one chunk."""

    source: str
    target: str
    relation: str


class ChapterOutline(CamelModel):
    """Summary of one sub-chapter inside a chunk."""

    title: str
    summary: str


class ChunkAnalysis(CamelModel):
    """Structured analysis of a single chunk."""

    summary: str
    sentiment_score: float = 0.0
    key_characters: list[CharacterProfile] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    plot_points: list[str] = Field(default_factory=list)
    chapter_outlines: list[ChapterOutline] | None = None

    # Set when the analysis only exists to carry outlines
    outline_only: bool = False

    @field_validator("sentiment_score")
    @classmethod
    def clamp_sentiment(cls, value: float) -> float:
        return max(-1.0, min(1.0, value))

    @classmethod
    def outline_placeholder(cls, outlines: list[ChapterOutline]) -> "ChunkAnalysis":
        """Create the analysis stub that hosts outlines for an unanalyzed chunk."""
        return cls(
            summary=OUTLINE_PLACEHOLDER_SUMMARY,
            chapter_outlines=outlines,
            outline_only=True,
        )


class Chunk(CamelModel):
    """A contiguous, offset-addressed slice of the source document."""

    id: int
    title: str
    content: str
    start_index: int
    end_index: int
    analysis: ChunkAnalysis | None = None

    @property
    def is_analyzed(self) -> bool:
        """True when a full (non outline-only) analysis is attached."""
        return self.analysis is not None and not self.analysis.outline_only

    @property
    def has_outlines(self) -> bool:
        return bool(self.analysis and self.analysis.chapter_outlines)


class GraphNode(CamelModel):
    """Character node in the global graph."""

    id: str
    group: int = 1
    value: int = 1


class GraphLink(CamelModel):
    """Undirected, labelled edge between two characters."""

    source: str
    target: str
    label: str

    @property
    def pair_key(self) -> tuple[str, str]:
        return tuple(sorted((self.source, self.target)))


class GlobalGraph(CamelModel):
    """Cumulative character-relationship graph of a document."""

    nodes: list[GraphNode] = Field(default_factory=list)
    links: list[GraphLink] = Field(default_factory=list)


class AnalysisSettings(CamelModel):
    """Per-document analysis settings."""

    provider: str = "openai"
    model_name: str = "gpt-4o"
    api_base: str | None = None
    target_chunk_size: int = 25000
    custom_prompt: str | None = None
    max_output_tokens: int = 16384
    temperature: float = 0.3

    @field_validator("target_chunk_size", "max_output_tokens")
    @classmethod
    def must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value


class NovelMetadata(CamelModel):
    """Library entry for a stored novel."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    total_characters: int
    chunk_count: int
    analyzed_chunk_count: int = 0
    current_chunk_index: int = 0
    # Milliseconds since the epoch
    last_updated: int = Field(default_factory=lambda: int(time.time() * 1000))
    settings: AnalysisSettings = Field(default_factory=AnalysisSettings)


class NovelData(CamelModel):
    """Full text, chunks and graph of a stored novel."""

    id: str
    content: str
    chunks: list[Chunk] = Field(default_factory=list)
    global_graph: GlobalGraph = Field(default_factory=GlobalGraph)


class NovelBackup(CamelModel):
    """Export/import envelope."""

    metadata: NovelMetadata
    data: NovelData
    version: int = 1


class NovelState(CamelModel):
    """In-memory working set of one open novel."""

    id: str
    title: str
    content: str
    chunks: list[Chunk] = Field(default_factory=list)
    global_graph: GlobalGraph = Field(default_factory=GlobalGraph)
    settings: AnalysisSettings = Field(default_factory=AnalysisSettings)
    current_chunk_index: int = 0

    # Bumped whenever the chunk list is replaced wholesale
    version: int = 0

    @property
    def analyzed_count(self) -> int:
        return sum(1 for chunk in self.chunks if chunk.is_analyzed)

    @classmethod
    def from_storage(cls, metadata: NovelMetadata, data: NovelData) -> "NovelState":
        return cls(
            id=metadata.id,
            title=metadata.title,
            content=data.content,
            chunks=list(data.chunks),
            global_graph=data.global_graph,
            settings=metadata.settings,
            current_chunk_index=metadata.current_chunk_index,
        )
