"""Pipeline orchestration and progress reporting."""

from .progress import PipelineStage, ProgressEvent, ProgressReporter, STAGE_CHECKPOINTS
from .orchestrator import (
    PipelineOrchestrator,
    PipelineContext,
    PipelineResult,
    PipelineStats,
    ProcessingStats,
)

__all__ = [
    "PipelineStage",
    "ProgressEvent",
    "ProgressReporter",
    "STAGE_CHECKPOINTS",
    "PipelineOrchestrator",
    "PipelineContext",
    "PipelineResult",
    "PipelineStats",
    "ProcessingStats",
]
