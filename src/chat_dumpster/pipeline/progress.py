"""Progress reporting for dumpster pipeline runs."""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    """Pipeline stage identifiers, in execution order."""

    INITIALIZING = "initializing"
    VALIDATING_ARCHIVE = "validating-archive"
    EXTRACTING = "extracting"
    DETECTING_LAYOUT = "detecting-layout"
    DUMPING_CONVERSATIONS = "dumping-conversations"
    RESOLVING_ASSETS = "resolving-assets"
    ORGANIZING_MEDIA = "organizing-media"
    VALIDATING_DUMPSTER = "validating-dumpster"
    COMPLETED = "completed"
    FAILED = "failed"


STAGE_CHECKPOINTS = {
    PipelineStage.INITIALIZING: 0,
    PipelineStage.VALIDATING_ARCHIVE: 0,
    PipelineStage.EXTRACTING: 10,
    PipelineStage.DETECTING_LAYOUT: 30,
    PipelineStage.DUMPING_CONVERSATIONS: 40,
    PipelineStage.RESOLVING_ASSETS: 70,
    PipelineStage.ORGANIZING_MEDIA: 85,
    PipelineStage.VALIDATING_DUMPSTER: 95,
    PipelineStage.COMPLETED: 100,
}


@dataclass(frozen=True)
class ProgressEvent:
    stage: PipelineStage
    progress: int
    message: str


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Emits progress events for one run and keeps their history.

    Progress never goes backwards: a failure is reported at the
    percentage last reached.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None, verbose: bool = False):
        self.callback = callback
        self.verbose = verbose
        self.events: List[ProgressEvent] = []
        self.start_time = time.time()

    @property
    def current(self) -> int:
        return self.events[-1].progress if self.events else 0

    @property
    def stage(self) -> Optional[PipelineStage]:
        return self.events[-1].stage if self.events else None

    def enter(self, stage: PipelineStage, message: str) -> ProgressEvent:
        """Report the start of a stage at its checkpoint percentage."""
        return self.update(stage, STAGE_CHECKPOINTS[stage], message)

    def fail(self, message: str) -> ProgressEvent:
        return self.update(PipelineStage.FAILED, self.current, message)

    def update(self, stage: PipelineStage, progress: int, message: str) -> ProgressEvent:
        progress = max(self.current, min(100, int(progress)))
        event = ProgressEvent(stage=stage, progress=progress, message=message)
        self.events.append(event)

        level = logging.INFO if self.verbose else logging.DEBUG
        logger.log(
            level,
            f"[{stage.value}] {progress}% - {message}",
            extra={"extra_fields": {"stage": stage.value, "progress": progress}}
        )

        if self.callback is not None:
            self.callback(event)
        return event

    def elapsed(self) -> str:
        return self._format_time(time.time() - self.start_time)

    @staticmethod
    def _format_time(seconds: float) -> str:
        """Format seconds as human-readable time (e.g. "2h 15m 30s")."""
        if seconds <= 0:
            return "0s"

        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = int(seconds % 60)

        parts = []
        if hours > 0:
            parts.append(f"{hours}h")
        if minutes > 0:
            parts.append(f"{minutes}m")
        if secs > 0 or not parts:
            parts.append(f"{secs}s")

        return " ".join(parts)
