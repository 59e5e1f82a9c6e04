"""LangChain implementation of the analysis interface."""

import asyncio
import logging
from typing import Any

from langchain_core.prompts import ChatPromptTemplate
from langsmith import traceable
from pydantic import ValidationError

from novel_mind.config.pipeline_config import PipelineConfig
from novel_mind.data_models.entities import (
    AnalysisSettings,
    ChapterOutline,
    ChunkAnalysis,
)
from novel_mind.text_processing.text_processing import split_sections

from ..config import LLMConfig
from ..exceptions import LLMError, LLMResponseError
from ..factory import create_chat_model
from ..interfaces.llm_interface import AnalysisInterface
from ..prompts import (
    build_analysis_prompt,
    build_outline_prompt,
    build_question_prompt,
)
from ..utils import (
    classify_provider_error,
    message_text,
    parse_json_array_leniently,
    parse_json_response,
    with_retry,
)

logger = logging.getLogger(__name__)

DEFAULT_OUTLINE_TITLE = "Outline"


class LangChainAnalysisProvider(AnalysisInterface):
    """Chunk analysis backed by a LangChain chat model."""

    def __init__(
        self,
        pipeline_config: PipelineConfig | None = None,
        chat_model: Any | None = None,
    ):
        """
        Initialize the provider.

        Args:
            pipeline_config: Retry and concurrency settings. Defaults to
                environment-based config.
            chat_model: Chat model to use for every call. When None, a model is
                created per distinct provider/model setting from LLMConfig.
        """
        self.pipeline_config = pipeline_config or PipelineConfig()
        self._chat_model = chat_model
        self._models: dict[tuple, Any] = {}

    def _get_chat_model(self, settings: AnalysisSettings, json_mode: bool):
        """Return the configured chat model, creating and caching it on first use."""
        if self._chat_model is not None:
            return self._chat_model

        key = (
            settings.provider,
            settings.model_name,
            settings.api_base,
            settings.temperature,
            settings.max_output_tokens,
            json_mode,
        )
        if key not in self._models:
            config = LLMConfig.from_settings(settings)
            logger.info(f"Creating chat model {config.provider}/{config.model_name}")
            self._models[key] = create_chat_model(config, json_mode=json_mode)
        return self._models[key]

    async def _invoke(
        self,
        prompt: ChatPromptTemplate,
        inputs: dict[str, str],
        settings: AnalysisSettings,
        description: str,
        json_mode: bool = False,
    ) -> str:
        """Run prompt | model with transient-error retry and return the text."""
        chain = prompt | self._get_chat_model(settings, json_mode)

        async def attempt() -> str:
            try:
                response = await chain.ainvoke(inputs)
            except LLMError:
                raise
            except Exception as e:
                raise classify_provider_error(e) from e
            return message_text(response)

        return await with_retry(
            attempt,
            max_attempts=self.pipeline_config.max_attempts,
            base_delay=self.pipeline_config.backoff_base_delay,
            description=description,
        )

    @traceable(name="Analysis Provider: Analyze Chunk")
    async def analyze_chunk(
        self, text: str, settings: AnalysisSettings, previous_summary: str = ""
    ) -> ChunkAnalysis:
        """Analyze one chunk, conditioned on the running summary."""
        prompt = build_analysis_prompt(settings.custom_prompt, bool(previous_summary))
        inputs = {"text": text}
        if previous_summary:
            inputs["previous_summary"] = previous_summary

        raw = await self._invoke(
            prompt, inputs, settings, description="Chunk analysis", json_mode=True
        )
        return self._parse_analysis(raw)

    @traceable(name="Analysis Provider: Generate Outlines")
    async def generate_outlines(
        self, text: str, settings: AnalysisSettings, title: str = ""
    ) -> list[ChapterOutline]:
        """Summarize each chapter section of a chunk with bounded concurrency."""
        sections = split_sections(text, title or DEFAULT_OUTLINE_TITLE)
        if not sections:
            return []

        prompt = build_outline_prompt()
        semaphore = asyncio.Semaphore(self.pipeline_config.outline_concurrency)

        async def summarize(section_title: str, section_text: str) -> list[ChapterOutline]:
            async with semaphore:
                raw = await self._invoke(
                    prompt,
                    {"title": section_title, "text": section_text},
                    settings,
                    description=f"Outline of '{section_title}'",
                )
            return self._parse_outlines(raw, section_title)

        results = await asyncio.gather(
            *(summarize(section_title, body) for section_title, body in sections)
        )
        outlines = [outline for group in results for outline in group]
        logger.info(f"Generated {len(outlines)} outlines from {len(sections)} sections")
        return outlines

    @traceable(name="Analysis Provider: Answer Question")
    async def answer_question(
        self,
        question: str,
        chunk_text: str,
        settings: AnalysisSettings,
        previous_summary: str = "",
    ) -> str:
        """Answer a question about the current chunk."""
        previous_context = (
            f"PREVIOUS CONTEXT SUMMARY:\n{previous_summary}\n\n"
            if previous_summary
            else ""
        )
        answer = await self._invoke(
            build_question_prompt(),
            {
                "previous_context": previous_context,
                "text": chunk_text,
                "question": question,
            },
            settings,
            description="Question answering",
        )
        if not answer.strip():
            raise LLMResponseError("Empty response from LLM")
        return answer.strip()

    def _parse_analysis(self, raw: str) -> ChunkAnalysis:
        data = parse_json_response(raw)
        if not isinstance(data, dict):
            raise LLMResponseError(
                f"Expected a JSON object, got {type(data).__name__}"
            )
        # Only set locally, never by the model
        data.pop("outlineOnly", None)
        data.pop("outline_only", None)
        try:
            return ChunkAnalysis.model_validate(data)
        except ValidationError as e:
            raise LLMResponseError(f"Analysis does not match schema: {e}") from e

    def _parse_outlines(self, raw: str, section_title: str) -> list[ChapterOutline]:
        items = parse_json_array_leniently(raw)
        outlines = []
        for item in items:
            if not isinstance(item, dict):
                continue
            summary = str(item.get("summary") or "").strip()
            if not summary:
                continue
            outlines.append(
                ChapterOutline(
                    title=str(item.get("title") or section_title).strip(),
                    summary=summary,
                )
            )
        if not outlines:
            raise LLMResponseError(f"No outlines in response for '{section_title}'")
        return outlines
