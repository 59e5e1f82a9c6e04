"""Markdown export of chapter outlines."""

from novel_mind.data_models.entities import Chunk

SEPARATOR = "---\n\n"


def render_outlines_markdown(title: str, chunks: list[Chunk]) -> str:
    """
    Render the outlines of a novel as Markdown.

    Chunks with outlines contribute one `###` section per outline. Chunks with
    only a full analysis contribute their summary as a quote. Chunks without
    any analysis are left out.
    """
    parts = [f"# {title} - Chapter Outlines\n\n"]
    for chunk in chunks:
        if chunk.analysis is None:
            continue
        if chunk.has_outlines:
            for outline in chunk.analysis.chapter_outlines:
                parts.append(f"### {outline.title}\n{outline.summary}\n\n")
            parts.append(SEPARATOR)
        elif not chunk.analysis.outline_only:
            parts.append(
                f"## Segment {chunk.id + 1}: {chunk.title}\n"
                f"> {chunk.analysis.summary}\n\n"
            )
            parts.append(SEPARATOR)
    return "".join(parts)
