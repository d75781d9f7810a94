"""chat-dumpster: ingest chat export archives into normalized dumpsters."""

__version__ = "0.1.0"

from .config import DumpsterConfig
from .errors import (
    DumpsterError,
    ConfigurationError,
    ValidationError,
    ExtractionError,
    LayoutDetectionError,
    FormatError,
    DumpsterValidationError,
    DumpsterExistsError,
)
from .pipeline import PipelineOrchestrator, PipelineResult, ProgressEvent, PipelineStage

__all__ = [
    "__version__",
    "DumpsterConfig",
    "DumpsterError",
    "ConfigurationError",
    "ValidationError",
    "ExtractionError",
    "LayoutDetectionError",
    "FormatError",
    "DumpsterValidationError",
    "DumpsterExistsError",
    "PipelineOrchestrator",
    "PipelineResult",
    "ProgressEvent",
    "PipelineStage",
]
