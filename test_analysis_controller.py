"""Tests for the sequential analysis and outline controllers."""

import pytest

from novel_mind.data_models.entities import (
    AnalysisSettings,
    ChapterOutline,
    ChunkAnalysis,
    NovelState,
    Relationship,
)
from novel_mind.database.exceptions import StorageWriteError
from novel_mind.services.analysis_controller import (
    AnalysisInProgressError,
    ControllerState,
    _ChunkController,
    OutlineController,
    RunStatus,
    SequentialAnalysisController,
    can_analyze,
    find_resume_point,
)


@pytest.fixture
def novel(chunk_factory):
    return NovelState(
        id="novel-1",
        title="Test Novel",
        content="c1 text\nc2 text\nc3 text\n",
        chunks=chunk_factory("c1 text\n", "c2 text\n", "c3 text\n"),
        settings=AnalysisSettings(),
    )


@pytest.fixture
def saved():
    return []


@pytest.fixture
def persist(saved):
    async def _persist(state):
        saved.append(state)

    return _persist


@pytest.fixture
def controller(provider, persist, pipeline_config):
    return SequentialAnalysisController(provider, persist, pipeline_config)


def with_analysis(novel, index, summary):
    novel.chunks[index] = novel.chunks[index].model_copy(
        update={"analysis": ChunkAnalysis(summary=summary)}
    )


class TestHelpers:
    def test_can_analyze_requires_previous_analysis(self, novel):
        assert can_analyze(novel.chunks, 0)
        assert not can_analyze(novel.chunks, 1)
        with_analysis(novel, 0, "s1")
        assert can_analyze(novel.chunks, 1)
        assert not can_analyze(novel.chunks, 2)
        assert not can_analyze(novel.chunks, 3)

    def test_resume_point_uses_last_summary(self, novel):
        assert find_resume_point(novel.chunks) == (0, "")
        with_analysis(novel, 0, "s1")
        with_analysis(novel, 1, "s2")
        assert find_resume_point(novel.chunks) == (2, "s2")
        with_analysis(novel, 2, "s3")
        assert find_resume_point(novel.chunks) == (None, "s3")

    def test_controller_base_cannot_be_instantiated(self, provider):
        async def persist(state):
            pass

        with pytest.raises(TypeError):
            _ChunkController(provider, persist)


class TestSequentialAnalysisController:
    @pytest.mark.asyncio
    async def test_analyzes_all_chunks_with_running_summary(self, controller, provider, novel, saved):
        report = await controller.run(novel)

        assert report.status == RunStatus.COMPLETED
        assert report.processed == 3
        assert [prev for _, prev in provider.analyze_calls] == [
            "",
            "summary:c1 text",
            "summary:c2 text",
        ]
        assert novel.analyzed_count == 3
        assert len(saved) == 3
        assert controller.state == ControllerState.IDLE

    @pytest.mark.asyncio
    async def test_resumes_after_last_analyzed_chunk(self, controller, provider, novel):
        with_analysis(novel, 0, "earlier summary")

        report = await controller.run(novel)

        assert report.processed == 2
        assert provider.analyze_calls[0] == ("c2 text\n", "earlier summary")

    @pytest.mark.asyncio
    async def test_nothing_to_do_when_all_analyzed(self, controller, provider, novel):
        for index in range(3):
            with_analysis(novel, index, f"s{index}")

        report = await controller.run(novel)

        assert report.status == RunStatus.NOTHING_TO_DO
        assert provider.analyze_calls == []

    @pytest.mark.asyncio
    async def test_single_failure_is_retried(self, controller, provider, novel):
        provider.fail("c2", times=1)

        report = await controller.run(novel)

        assert report.status == RunStatus.COMPLETED
        assert [text for text, _ in provider.analyze_calls] == [
            "c1 text\n",
            "c2 text\n",
            "c2 text\n",
            "c3 text\n",
        ]

    @pytest.mark.asyncio
    async def test_second_failure_stops_the_run(self, controller, provider, novel):
        provider.fail("c2", times=2)

        report = await controller.run(novel)

        assert report.status == RunStatus.FAILED
        assert report.failure.ordinal == 2
        assert report.failure.title == "Chunk 2"
        assert novel.chunks[0].is_analyzed
        assert not novel.chunks[1].is_analyzed
        assert all("c3" not in text for text, _ in provider.analyze_calls)
        assert controller.state == ControllerState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_takes_effect_before_next_chunk(self, controller, provider, novel):
        provider.on_analyze = lambda calls: controller.stop()

        report = await controller.run(novel)

        assert report.status == RunStatus.CANCELLED
        assert report.processed == 1
        assert novel.chunks[0].is_analyzed
        assert len(provider.analyze_calls) == 1
        assert controller.state == ControllerState.IDLE

    @pytest.mark.asyncio
    async def test_overlapping_runs_are_rejected(self, controller, novel):
        task = controller.start(novel)
        assert controller.is_running

        with pytest.raises(AnalysisInProgressError):
            await controller.run(novel)

        report = await task
        assert report.status == RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_wait_returns_background_report(self, controller, novel):
        controller.start(novel)
        report = await controller.wait()
        assert report.processed == 3
        assert await controller.wait() is None

    @pytest.mark.asyncio
    async def test_failed_save_leaves_state_untouched(self, provider, pipeline_config, novel):
        async def failing_persist(state):
            raise StorageWriteError("disk full")

        controller = SequentialAnalysisController(provider, failing_persist, pipeline_config)
        report = await controller.run(novel)

        assert report.status == RunStatus.FAILED
        assert "disk full" in report.failure.reason
        assert novel.chunks[0].analysis is None
        assert novel.global_graph.nodes == []

    @pytest.mark.asyncio
    async def test_relationships_are_merged_into_graph(self, controller, provider, novel, saved):
        provider.relationships["c1"] = [Relationship(source="A", target="B", relation="ally")]
        provider.relationships["c3"] = [Relationship(source="B", target="A", relation="foe")]

        await controller.run(novel)

        assert {n.id: n.value for n in novel.global_graph.nodes} == {"A": 2, "B": 2}
        assert len(novel.global_graph.links) == 1
        assert saved[0].global_graph.links[0].label == "ally"

    @pytest.mark.asyncio
    async def test_existing_outlines_are_kept(self, controller, novel):
        outlines = [ChapterOutline(title="第一章", summary="outline")]
        novel.chunks[0] = novel.chunks[0].model_copy(
            update={"analysis": ChunkAnalysis.outline_placeholder(outlines)}
        )

        await controller.run(novel)

        analysis = novel.chunks[0].analysis
        assert analysis.summary == "summary:c1 text"
        assert not analysis.outline_only
        assert analysis.chapter_outlines == outlines

    @pytest.mark.asyncio
    async def test_replaced_chunk_list_discards_result(self, controller, provider, novel):
        def replace_chunks(calls):
            novel.version += 1

        provider.on_analyze = replace_chunks

        report = await controller.run(novel)

        assert report.status == RunStatus.SUPERSEDED
        assert novel.chunks[0].analysis is None
        assert controller.state == ControllerState.STOPPED


class TestOutlineController:
    @pytest.mark.asyncio
    async def test_outlines_every_chunk(self, provider, persist, pipeline_config, novel, saved):
        with_analysis(novel, 0, "full analysis")
        controller = OutlineController(provider, persist, pipeline_config)

        report = await controller.run(novel)

        assert report.status == RunStatus.COMPLETED
        assert report.processed == 3
        first, second = novel.chunks[0].analysis, novel.chunks[1].analysis
        assert first.summary == "full analysis"
        assert first.chapter_outlines[0].title == "Chunk 1"
        assert second.outline_only
        assert second.summary == "Outline generated."
        assert novel.analyzed_count == 1
        assert novel.global_graph.nodes == []
        assert len(saved) == 3

    @pytest.mark.asyncio
    async def test_failures_are_skipped(self, provider, persist, pipeline_config, novel):
        provider.outline_failures.add("c2")
        controller = OutlineController(provider, persist, pipeline_config)

        report = await controller.run(novel)

        assert report.status == RunStatus.COMPLETED
        assert report.processed == 2
        assert [f.ordinal for f in report.skipped] == [2]
        assert novel.chunks[1].analysis is None
        assert novel.chunks[2].has_outlines

    @pytest.mark.asyncio
    async def test_chunks_with_outlines_are_not_regenerated(self, provider, persist, pipeline_config, novel):
        controller = OutlineController(provider, persist, pipeline_config)
        await controller.run(novel)
        provider.outline_calls.clear()

        report = await controller.run(novel)

        assert report.processed == 0
        assert provider.outline_calls == []
