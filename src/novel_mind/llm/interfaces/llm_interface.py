"""Abstract interface for the external analysis service."""

from abc import ABC, abstractmethod

from novel_mind.data_models.entities import (
    AnalysisSettings,
    ChapterOutline,
    ChunkAnalysis,
)


class AnalysisInterface(ABC):
    """Abstract interface for chunk analysis operations."""

    @abstractmethod
    async def analyze_chunk(
        self, text: str, settings: AnalysisSettings, previous_summary: str = ""
    ) -> ChunkAnalysis:
        """
        Analyze one chunk of novel text.

        Args:
            text: Chunk content
            settings: Analysis settings of the novel
            previous_summary: Running summary of everything before this chunk

        Returns:
            Structured analysis of the chunk

        Raises:
            LLMError: If analysis fails. Transient errors have already been
                retried by the time they reach the caller.
        """
        pass

    @abstractmethod
    async def generate_outlines(
        self, text: str, settings: AnalysisSettings, title: str = ""
    ) -> list[ChapterOutline]:
        """
        Summarize each sub-chapter of a chunk.

        Args:
            text: Chunk content
            settings: Analysis settings of the novel
            title: Chunk title, used when the text has no chapter headers

        Returns:
            Outlines in reading order

        Raises:
            LLMError: If outline generation fails
        """
        pass

    @abstractmethod
    async def answer_question(
        self,
        question: str,
        chunk_text: str,
        settings: AnalysisSettings,
        previous_summary: str = "",
    ) -> str:
        """
        Answer a question about the current chunk.

        Args:
            question: User question
            chunk_text: Content of the chunk being read
            settings: Analysis settings of the novel
            previous_summary: Summary of the preceding chunk, if any

        Returns:
            Answer text

        Raises:
            LLMError: If generation fails
        """
        pass
