"""Service layer for analysis runs and library operations."""

from .analysis_controller import (
    AnalysisInProgressError,
    AnalysisRunReport,
    CancellationToken,
    ControllerState,
    OutlineController,
    RunStatus,
    SequentialAnalysisController,
)
from .novel_service import NovelService

__all__ = [
    "NovelService",
    "SequentialAnalysisController",
    "OutlineController",
    "AnalysisRunReport",
    "AnalysisInProgressError",
    "CancellationToken",
    "ControllerState",
    "RunStatus",
]
