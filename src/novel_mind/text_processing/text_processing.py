"""Splitting of novel text into analyzable chunks."""

import logging
from dataclasses import dataclass

from novel_mind.data_models.entities import Chunk
from novel_mind.text_processing.boundaries import (
    ChapterBoundary,
    detect_boundaries,
    has_sufficient_structure,
)

logger = logging.getLogger(__name__)

FRONT_MATTER_TITLE = "Start"
SEGMENT_TITLE_PREFIX = "Segment"
# A newline is only used as a cut point when it lies in the last 20% of the budget
NEWLINE_SNAP_RATIO = 0.8


@dataclass
class _Span:
    title: str
    content: str
    start_index: int
    end_index: int


def _validate_target_size(target_size: int) -> None:
    if target_size <= 0:
        raise ValueError(f"Target chunk size must be positive, got {target_size}")


def _find_cut(text: str, cursor: int, target_size: int) -> int:
    """Return the end offset of the part starting at cursor."""
    end = min(cursor + target_size, len(text))
    if end < len(text):
        last_newline = text.rfind("\n", 0, end + 1)
        if last_newline > cursor + target_size * NEWLINE_SNAP_RATIO:
            end = last_newline
    return end


def split_by_length(
    text: str,
    target_size: int,
    base_offset: int = 0,
    title: str | None = None,
    first_ordinal: int = 1,
) -> list[_Span]:
    """
    Split text into consecutive length-bounded parts.

    Args:
        text: Text to split
        target_size: Maximum part length in characters
        base_offset: Offset of text within the full document
        title: Chapter title for the parts. Parts are titled "<title> (Part k)"
            when the text needs splitting; without a title they are titled
            "Segment N" starting at first_ordinal.
        first_ordinal: First segment number for untitled splitting

    Returns:
        Parts with trimmed content and untrimmed document offsets.
        Whitespace-only parts are dropped.
    """
    _validate_target_size(target_size)
    spans: list[_Span] = []
    needs_parts = len(text) > target_size
    cursor = 0

    while cursor < len(text):
        end = _find_cut(text, cursor, target_size)
        content = text[cursor:end].strip()
        if content:
            if title is None:
                part_title = f"{SEGMENT_TITLE_PREFIX} {first_ordinal + len(spans)}"
            elif needs_parts:
                part_title = f"{title} (Part {len(spans) + 1})"
            else:
                part_title = title
            spans.append(
                _Span(
                    title=part_title,
                    content=content,
                    start_index=base_offset + cursor,
                    end_index=base_offset + end,
                )
            )
        cursor = end

    return spans


def _group_sections(
    text: str, boundaries: list[ChapterBoundary], target_size: int
) -> list[_Span]:
    """Greedily group consecutive chapter sections under the size budget."""
    split_points = list(boundaries)
    if not split_points or split_points[0].offset > 0:
        split_points.insert(0, ChapterBoundary(offset=0, title=FRONT_MATTER_TITLE))
    split_points.append(ChapterBoundary(offset=len(text), title="End"))

    spans: list[_Span] = []

    def flush(start: int, end: int, title: str) -> None:
        section = text[start:end]
        if not section.strip():
            return
        spans.extend(split_by_length(section, target_size, start, title))

    group_start = split_points[0].offset
    group_title = split_points[0].title

    for current, following in zip(split_points, split_points[1:]):
        section_length = following.offset - current.offset
        pending_length = current.offset - group_start

        if section_length > target_size:
            # Oversized chapter: flush the pile, then split the chapter on its own
            if pending_length > 0:
                flush(group_start, current.offset, group_title)
            flush(current.offset, following.offset, current.title)
            group_start = following.offset
            group_title = following.title
            continue

        if pending_length + section_length > target_size:
            if pending_length > 0:
                flush(group_start, current.offset, group_title)
            group_start = current.offset
            group_title = current.title

    if group_start < len(text):
        flush(group_start, len(text), group_title)

    return spans


def segment_text(
    text: str, target_size: int, first_segment_ordinal: int = 1
) -> list[Chunk]:
    """
    Split a document into ordered, non-overlapping chunks.

    Chapter headers are used as preferred boundaries: consecutive small
    chapters are grouped up to target_size characters, oversized chapters are
    split into parts. Documents without enough headers are split purely by
    length.

    Args:
        text: Full document text
        target_size: Target chunk size in characters
        first_segment_ordinal: Number of the first "Segment N" title when
            splitting purely by length

    Returns:
        Chunks with dense ids starting at 0

    Raises:
        ValueError: If target_size is not positive
    """
    _validate_target_size(target_size)
    if not text:
        return []

    boundaries = detect_boundaries(text)
    if has_sufficient_structure(boundaries, len(text), target_size):
        spans = _group_sections(text, boundaries, target_size)
        logger.debug(
            f"Grouped {len(boundaries)} chapter headers into {len(spans)} chunks"
        )
    else:
        logger.info(
            f"Found {len(boundaries)} chapter headers in {len(text)} characters, "
            "falling back to length-based splitting"
        )
        spans = split_by_length(
            text, target_size, first_ordinal=first_segment_ordinal
        )

    return [
        Chunk(
            id=index,
            title=span.title,
            content=span.content,
            start_index=span.start_index,
            end_index=span.end_index,
        )
        for index, span in enumerate(spans)
    ]


def find_frontier(chunks: list[Chunk]) -> int | None:
    """Index of the first chunk without a completed analysis, or None."""
    for index, chunk in enumerate(chunks):
        if not chunk.is_analyzed:
            return index
    return None


def resegment(
    full_text: str, existing_chunks: list[Chunk], new_target_size: int
) -> list[Chunk]:
    """
    Re-split the unanalyzed tail of a document with a new target size.

    Chunks before the analysis frontier are kept as they are. The text from
    the end of the last kept chunk onwards is segmented again, renumbered
    after the kept chunks and shifted to document offsets.

    Args:
        full_text: Full document text
        existing_chunks: Current chunk list
        new_target_size: New target chunk size in characters

    Returns:
        The new chunk list (the existing list itself when nothing is left to
        re-split)
    """
    _validate_target_size(new_target_size)
    frontier = find_frontier(existing_chunks)
    if frontier is None:
        logger.info("All chunks analyzed, nothing to resegment")
        return existing_chunks

    preserved = existing_chunks[:frontier]
    cut_point = preserved[-1].end_index if preserved else 0
    next_id = preserved[-1].id + 1 if preserved else 0

    tail_chunks = segment_text(
        full_text[cut_point:], new_target_size, first_segment_ordinal=next_id + 1
    )
    shifted = [
        chunk.model_copy(
            update={
                "id": next_id + offset,
                "start_index": chunk.start_index + cut_point,
                "end_index": chunk.end_index + cut_point,
            }
        )
        for offset, chunk in enumerate(tail_chunks)
    ]

    logger.info(
        f"Resegmented from chunk {frontier}: kept {len(preserved)}, "
        f"replaced {len(existing_chunks) - len(preserved)} with {len(shifted)} "
        f"(target size {new_target_size})"
    )
    return preserved + shifted


def split_sections(text: str, default_title: str) -> list[tuple[str, str]]:
    """
    Split a chunk into its chapter sections.

    Text before the first header (or the whole text, when it has no headers)
    becomes a section titled default_title. Whitespace-only sections are
    dropped.

    Returns:
        (title, content) pairs in reading order
    """
    boundaries = detect_boundaries(text)
    offsets = [boundary.offset for boundary in boundaries] + [len(text)]
    sections: list[tuple[str, str]] = []

    leading = text[: offsets[0]].strip()
    if leading:
        sections.append((default_title, leading))

    for boundary, end in zip(boundaries, offsets[1:]):
        content = text[boundary.offset : end].strip()
        if content:
            sections.append((boundary.title, content))

    return sections
