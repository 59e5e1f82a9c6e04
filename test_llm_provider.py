"""Tests for the LangChain analysis provider and LLM helpers."""

import httpx
import openai
import pytest
from langchain_core.language_models import FakeListChatModel
from langchain_google_genai import ChatGoogleGenerativeAI

from novel_mind.config.pipeline_config import PipelineConfig
from novel_mind.data_models.entities import AnalysisSettings
from novel_mind.llm.config import LLMConfig
from novel_mind.llm.factory import create_chat_model
from novel_mind.llm.exceptions import (
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMServerError,
    LLMValidationError,
)
from novel_mind.llm.providers import LangChainAnalysisProvider
from novel_mind.llm.utils import (
    classify_provider_error,
    parse_json_array_leniently,
    repair_truncated_array,
    with_retry,
)

ANALYSIS_RESPONSE = """```json
{
  "summary": "张三离开村子",
  "sentimentScore": 1.7,
  "keyCharacters": [{"name": "张三", "role": "主角", "traits": ["勇敢"]}],
  "relationships": [{"source": "张三", "target": "李四", "relation": "朋友"}],
  "plotPoints": ["离村"],
  "outlineOnly": true
}
```"""


@pytest.fixture
def sequential_config():
    return PipelineConfig(max_attempts=2, backoff_base_delay=0, outline_concurrency=1)


def make_provider(responses, config):
    return LangChainAnalysisProvider(
        pipeline_config=config, chat_model=FakeListChatModel(responses=responses)
    )


class TestAnalyzeChunk:
    @pytest.mark.asyncio
    async def test_parses_fenced_camel_case_json(self, sequential_config):
        provider = make_provider([ANALYSIS_RESPONSE], sequential_config)

        analysis = await provider.analyze_chunk("text", AnalysisSettings(), "之前")

        assert analysis.summary == "张三离开村子"
        assert analysis.sentiment_score == 1.0
        assert analysis.key_characters[0].traits == ["勇敢"]
        assert analysis.relationships[0].target == "李四"
        assert analysis.plot_points == ["离村"]
        assert not analysis.outline_only

    @pytest.mark.asyncio
    async def test_invalid_json_is_a_response_error(self, sequential_config):
        provider = make_provider(["this is not json"], sequential_config)

        with pytest.raises(LLMResponseError) as exc_info:
            await provider.analyze_chunk("text", AnalysisSettings())
        assert not exc_info.value.transient

    @pytest.mark.asyncio
    async def test_missing_summary_is_a_response_error(self, sequential_config):
        provider = make_provider(['{"plotPoints": []}'], sequential_config)

        with pytest.raises(LLMResponseError):
            await provider.analyze_chunk("text", AnalysisSettings())


class TestGenerateOutlines:
    @pytest.mark.asyncio
    async def test_one_request_per_section_in_order(self, sequential_config):
        provider = make_provider(
            [
                '[{"title": "第一章 起", "summary": "开端"}]',
                '{"outlines": [{"title": "第二章 承", "summary": "发展"}]}',
            ],
            sequential_config,
        )
        text = "第一章 起\n内容一\n第二章 承\n内容二"

        outlines = await provider.generate_outlines(text, AnalysisSettings(), "第一章 起")

        assert [(o.title, o.summary) for o in outlines] == [
            ("第一章 起", "开端"),
            ("第二章 承", "发展"),
        ]

    @pytest.mark.asyncio
    async def test_truncated_array_is_repaired(self, sequential_config):
        provider = make_provider(
            ['[{"title": "A", "summary": "one"}, {"title": "B", "summ'],
            sequential_config,
        )

        outlines = await provider.generate_outlines("plain text", AnalysisSettings(), "Segment 1")

        assert [o.title for o in outlines] == ["A"]

    @pytest.mark.asyncio
    async def test_missing_title_falls_back_to_section(self, sequential_config):
        provider = make_provider(['[{"summary": "only summary"}]'], sequential_config)

        outlines = await provider.generate_outlines("plain text", AnalysisSettings(), "Segment 4")

        assert outlines[0].title == "Segment 4"

    @pytest.mark.asyncio
    async def test_blank_text_needs_no_request(self, sequential_config):
        provider = make_provider([], sequential_config)
        assert await provider.generate_outlines("   ", AnalysisSettings()) == []


class TestAnswerQuestion:
    @pytest.mark.asyncio
    async def test_returns_stripped_answer(self, sequential_config):
        provider = make_provider(["  他是主角。 \n"], sequential_config)

        answer = await provider.answer_question("谁?", "text", AnalysisSettings(), "summary")

        assert answer == "他是主角。"

    @pytest.mark.asyncio
    async def test_empty_answer_is_an_error(self, sequential_config):
        provider = make_provider(["   "], sequential_config)

        with pytest.raises(LLMResponseError):
            await provider.answer_question("谁?", "text", AnalysisSettings())


class TestRetry:
    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise LLMServerError("overloaded")
            return "ok"

        assert await with_retry(flaky, max_attempts=3, base_delay=0) == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_permanent_errors_are_not_retried(self):
        calls = []

        async def broken():
            calls.append(1)
            raise LLMResponseError("bad json")

        with pytest.raises(LLMResponseError):
            await with_retry(broken, max_attempts=5, base_delay=0)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_last_error_raised_when_attempts_run_out(self):
        async def down():
            raise LLMConnectionError("unreachable")

        with pytest.raises(LLMConnectionError):
            await with_retry(down, max_attempts=2, base_delay=0)


class TestClassifyProviderError:
    request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")

    def status_error(self, status):
        response = httpx.Response(status, request=self.request)
        return openai.APIStatusError("failed", response=response, body=None)

    def test_rate_limit(self):
        error = classify_provider_error(self.status_error(429))
        assert isinstance(error, LLMRateLimitError)
        assert error.transient

    @pytest.mark.parametrize("status", [500, 503, 529])
    def test_server_errors_are_transient(self, status):
        error = classify_provider_error(self.status_error(status))
        assert isinstance(error, LLMServerError)
        assert error.transient

    @pytest.mark.parametrize("status", [400, 401, 413])
    def test_client_errors_are_permanent(self, status):
        assert not classify_provider_error(self.status_error(status)).transient

    def test_network_failures_are_transient(self):
        assert classify_provider_error(httpx.ConnectError("refused")).transient
        assert classify_provider_error(TimeoutError()).transient

    def test_unknown_errors_are_permanent(self):
        error = classify_provider_error(RuntimeError("boom"))
        assert type(error) is LLMError
        assert not error.transient


class TestJsonRepair:
    def test_repair_closes_array(self):
        assert repair_truncated_array('[{"a": 1}, {"b"') == '[{"a": 1}]'

    def test_repair_without_objects(self):
        assert repair_truncated_array("no json") is None

    def test_non_array_is_rejected(self):
        with pytest.raises(LLMResponseError):
            parse_json_array_leniently('{"a": 1, "b": 2}')


class TestLLMConfig:
    def test_settings_choose_model_but_not_credentials(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "secret")
        monkeypatch.delenv("LLM_API_KEY", raising=False)
        settings = AnalysisSettings(
            provider="anthropic",
            model_name="claude-sonnet",
            max_output_tokens=2048,
            temperature=0.5,
        )

        config = LLMConfig.from_settings(settings)

        assert config.provider == "anthropic"
        assert config.api_key == "secret"
        assert config.max_tokens == 2048
        config.validate()

    def test_unknown_provider_is_invalid(self):
        with pytest.raises(ValueError):
            LLMConfig(provider="mistral", api_key="x").validate()


class TestChatModelFactory:
    def test_gemini_key_comes_from_google_env(self, monkeypatch):
        monkeypatch.delenv("LLM_API_KEY", raising=False)
        monkeypatch.setenv("GOOGLE_API_KEY", "google-secret")

        config = LLMConfig.from_environment(provider="gemini")

        assert config.api_key == "google-secret"
        config.validate()

    def test_creates_gemini_model_in_json_mode(self):
        config = LLMConfig(
            provider="gemini",
            model_name="gemini-2.5-flash",
            api_key="google-secret",
            max_tokens=1024,
        )

        model = create_chat_model(config, json_mode=True)

        assert isinstance(model, ChatGoogleGenerativeAI)
        assert model.model.endswith("gemini-2.5-flash")
        assert model.response_mime_type == "application/json"
        assert model.max_retries == 0

    def test_missing_key_is_a_validation_error(self):
        with pytest.raises(LLMValidationError):
            create_chat_model(LLMConfig(provider="gemini", model_name="gemini-2.5-flash"))
