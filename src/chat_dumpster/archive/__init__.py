"""Archive validation and extraction."""

from .validator import ArchiveValidator, ArchiveReport, ZIP_SIGNATURES
from .extractor import ArchiveExtractor, ExtractionResult, create_scratch_dir, sanitize_filename

__all__ = [
    'ArchiveValidator',
    'ArchiveReport',
    'ZIP_SIGNATURES',
    'ArchiveExtractor',
    'ExtractionResult',
    'create_scratch_dir',
    'sanitize_filename',
]
