"""Pipeline error taxonomy.

Stage-level errors abort a run; record-level problems are counted by the
stage that meets them and never raised past it.
"""

from chat_dumpster.common import DumpsterError, ConfigurationError


class ValidationError(DumpsterError):
    """Archive failed a security limit; nothing was written to disk.

    ``context["limit"]`` names the violated limit.
    """
    pass


class ExtractionError(DumpsterError):
    """I/O failure while unpacking a validated archive."""
    pass


class LayoutDetectionError(DumpsterError):
    """Extracted tree does not look like a known export layout.

    ``context["missing"]`` lists the pieces that could not be located.
    """
    pass


class FormatError(DumpsterError):
    """Conversations file is not the expected shape."""
    pass


class DumpsterValidationError(DumpsterError):
    """Produced dumpster failed its post-condition check."""
    pass


class DumpsterExistsError(DumpsterError):
    """Target dumpster already exists and overwrite was not requested."""
    pass


__all__ = [
    'DumpsterError',
    'ConfigurationError',
    'ValidationError',
    'ExtractionError',
    'LayoutDetectionError',
    'FormatError',
    'DumpsterValidationError',
    'DumpsterExistsError',
]
