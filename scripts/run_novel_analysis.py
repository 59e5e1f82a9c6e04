"""Analyze a novel chunk by chunk from the command line.

Imports a text file into the library (or opens a stored novel), runs the
sequential analysis until every chunk is analyzed, and optionally writes the
chapter outlines as Markdown. Ctrl-C stops after the chunk in progress; the
next run resumes from there.

Import and analyze:
    poetry run python scripts/run_novel_analysis.py --file novel.txt

Resume a stored novel and export outlines:
    poetry run python scripts/run_novel_analysis.py --novel-id <id> --outlines --markdown out.md
"""

import argparse
import asyncio
import logging
import signal
from pathlib import Path

from novel_mind.config.pipeline_config import PipelineConfig
from novel_mind.data_models.entities import AnalysisSettings
from novel_mind.database.repositories import NovelRepositoryManager
from novel_mind.services import NovelService, RunStatus
from novel_mind.services.graph_service import graph_stats

logger = logging.getLogger(__name__)


async def run(args: argparse.Namespace) -> int:
    service = NovelService(
        repository_manager=NovelRepositoryManager(),
        pipeline_config=PipelineConfig(),
    )

    if args.file:
        path = Path(args.file)
        settings = AnalysisSettings(
            provider=args.provider,
            model_name=args.model,
            target_chunk_size=args.chunk_size,
        )
        novel = service.import_text(
            args.title or path.stem, path.read_text(encoding="utf-8"), settings
        )
        logger.info(f"Imported '{novel.title}' as {novel.id}")
    else:
        novel = service.open_novel(args.novel_id)

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, service.stop)

    if args.outlines:
        outline_report = await service.start_outlining()
        if outline_report.status == RunStatus.CANCELLED:
            logger.info("Interrupted during outline generation, analysis not started")
            return 0

    report = await service.start_analysis()
    if report.status == RunStatus.FAILED:
        logger.error(
            f"Analysis stopped at chunk {report.failure.ordinal} "
            f"({report.failure.title}): {report.failure.reason}"
        )
    logger.info(
        f"{report.status.value}: {report.processed} chunks this run, "
        f"{novel.analyzed_count}/{len(novel.chunks)} analyzed"
    )

    stats = graph_stats(novel.global_graph)
    logger.info(
        f"Graph: {stats['node_count']} characters, {stats['edge_count']} relations"
    )

    if args.markdown:
        Path(args.markdown).write_text(
            service.export_outlines_markdown(), encoding="utf-8"
        )
        logger.info(f"Outlines written to {args.markdown}")

    return 1 if report.status == RunStatus.FAILED else 0


def main():
    parser = argparse.ArgumentParser(
        description="Run sequential chunk analysis on a novel.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", type=str, help="Text file to import")
    source.add_argument("--novel-id", type=str, help="Id of a stored novel")
    parser.add_argument("--title", type=str, default=None, help="Title for an imported file")
    parser.add_argument("--provider", type=str, default="openai", help="openai, anthropic or gemini")
    parser.add_argument("--model", type=str, default="gpt-4o", help="Model name")
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=25000,
        help="Target chunk size in characters (default: 25000)",
    )
    parser.add_argument(
        "--outlines",
        action="store_true",
        help="Generate chapter outlines before the analysis",
    )
    parser.add_argument(
        "--markdown", type=str, default=None, help="Write outlines to this Markdown file"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )

    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
