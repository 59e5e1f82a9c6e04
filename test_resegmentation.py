"""Tests for re-splitting the unanalyzed tail of a document."""

from novel_mind.data_models.entities import ChapterOutline, ChunkAnalysis
from novel_mind.text_processing.text_processing import (
    find_frontier,
    resegment,
    segment_text,
)

THREE_CHAPTERS = (
    "第一章 甲\n" + "a" * 40 + "\n第二章 乙\n" + "b" * 40 + "\n第三章 丙\n" + "c" * 40
)


def analyzed(chunk, summary="done"):
    return chunk.model_copy(update={"analysis": ChunkAnalysis(summary=summary)})


def test_frontier_is_first_unanalyzed_chunk():
    chunks = segment_text(THREE_CHAPTERS, 50)
    assert find_frontier(chunks) == 0
    chunks[0] = analyzed(chunks[0])
    assert find_frontier(chunks) == 1


def test_outline_only_chunk_does_not_move_frontier():
    chunks = segment_text(THREE_CHAPTERS, 50)
    chunks[0] = chunks[0].model_copy(
        update={
            "analysis": ChunkAnalysis.outline_placeholder(
                [ChapterOutline(title="第一章 甲", summary="...")]
            )
        }
    )
    assert find_frontier(chunks) == 0


def test_keeps_analyzed_prefix_and_resplits_tail():
    chunks = segment_text(THREE_CHAPTERS, 50)
    chunks[0] = analyzed(chunks[0], "first")

    result = resegment(THREE_CHAPTERS, chunks, 100)

    assert len(result) == 2
    assert result[0] == chunks[0]
    assert result[0].analysis.summary == "first"
    tail = result[1]
    assert tail.id == 1
    assert tail.title == "第二章 乙"
    assert (tail.start_index, tail.end_index) == (46, len(THREE_CHAPTERS))
    assert tail.analysis is None
    assert "第三章 丙" in tail.content


def test_nothing_analyzed_resplits_everything():
    chunks = segment_text(THREE_CHAPTERS, 50)
    result = resegment(THREE_CHAPTERS, chunks, 100)
    assert result == segment_text(THREE_CHAPTERS, 100)


def test_fully_analyzed_list_is_returned_unchanged():
    chunks = [analyzed(chunk) for chunk in segment_text(THREE_CHAPTERS, 50)]
    assert resegment(THREE_CHAPTERS, chunks, 10) is chunks


def test_headerless_tail_continues_segment_numbering():
    text = "x" * 100
    chunks = segment_text(text, 30)
    chunks[0] = analyzed(chunks[0])
    chunks[1] = analyzed(chunks[1])

    result = resegment(text, chunks, 20)

    assert [c.title for c in result] == [
        "Segment 1",
        "Segment 2",
        "Segment 3",
        "Segment 4",
    ]
    assert [c.id for c in result] == [0, 1, 2, 3]
    assert [(c.start_index, c.end_index) for c in result[2:]] == [(60, 80), (80, 100)]


def test_tail_offsets_address_the_full_document():
    chunks = segment_text(THREE_CHAPTERS, 50)
    chunks[0] = analyzed(chunks[0])

    for chunk in resegment(THREE_CHAPTERS, chunks, 30)[1:]:
        assert THREE_CHAPTERS[chunk.start_index : chunk.end_index].strip() == chunk.content
