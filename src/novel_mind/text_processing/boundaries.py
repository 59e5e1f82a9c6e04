"""Chapter header detection for raw novel text."""

import re
from dataclasses import dataclass

# A header is a line that starts (after optional whitespace) with a numbered
# CJK chapter/volume/section marker, "Chapter N", or a prologue/interlude/
# epilogue token. The rest of the line is part of the title.
CHAPTER_PATTERN = re.compile(
    r"(?:^|\n)\s*"
    r"(?:第\s*[0-9零一二三四五六七八九十百千]+\s*[章回节卷]|Chapter\s*\d+|序章|引子|尾声)"
    r"[^\n]*"
)

MIN_BOUNDARIES = 2


@dataclass(frozen=True)
class ChapterBoundary:
    """A detected chapter header: offset of the match and its cleaned title line."""

    offset: int
    title: str


def detect_boundaries(text: str) -> list[ChapterBoundary]:
    """
    Find every chapter header in the text.

    Args:
        text: Raw document text

    Returns:
        Boundaries in document order. Offsets point at the start of the match,
        which includes the newline preceding the header line.
    """
    return [
        ChapterBoundary(offset=match.start(), title=match.group(0).strip())
        for match in CHAPTER_PATTERN.finditer(text)
    ]


def has_sufficient_structure(
    boundaries: list[ChapterBoundary], text_length: int, target_size: int
) -> bool:
    """
    Decide whether chapter-based grouping applies.

    A document longer than the target size with fewer than two headers is
    treated as headerless and gets pure length-based splitting.
    """
    return len(boundaries) >= MIN_BOUNDARIES or text_length <= target_size
