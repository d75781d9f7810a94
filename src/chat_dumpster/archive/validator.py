"""Pre-extraction security checks for uploaded archives.

Everything here works from the ZIP central directory only; no entry is
decompressed and nothing is written to disk.
"""

import io
import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from chat_dumpster.common import is_safe_member_path
from chat_dumpster.config import LimitsConfig
from chat_dumpster.errors import ValidationError

logger = logging.getLogger(__name__)

ZIP_SIGNATURES = (
    b'PK\x03\x04',  # local file header
    b'PK\x05\x06',  # empty archive
    b'PK\x07\x08',  # spanned archive
)

ArchiveSource = Union[bytes, bytearray, str, Path]


@dataclass
class ArchiveReport:
    """What the validator learned about an accepted archive."""
    declared_size: int
    extracted_size: int
    file_count: int
    max_ratio: float


def _read_head(source: ArchiveSource, length: int = 4) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source[:length])
    with open(source, 'rb') as f:
        return f.read(length)


def _declared_size(source: ArchiveSource) -> int:
    if isinstance(source, (bytes, bytearray)):
        return len(source)
    return Path(source).stat().st_size


def open_archive(source: ArchiveSource) -> zipfile.ZipFile:
    """Open an archive given as raw bytes or a filesystem path."""
    if isinstance(source, (bytes, bytearray)):
        return zipfile.ZipFile(io.BytesIO(bytes(source)), 'r')
    return zipfile.ZipFile(source, 'r')


class ArchiveValidator:
    """Checks an archive against the configured limits.

    Checks run in a fixed order and the first violation wins:

    1. archive byte length against ``max_upload_size``
    2. ZIP signature in the first four bytes
    3. total uncompressed size against ``max_extracted_size``
    4. per-entry compression ratio against ``max_compression_ratio``
    5. entry count against ``max_files_in_zip``
    6. entry names that could escape the extraction root
    """

    def __init__(self, limits: Optional[LimitsConfig] = None):
        self.limits = limits or LimitsConfig()

    def validate(self, source: ArchiveSource) -> ArchiveReport:
        """Validate an archive.

        Args:
            source: Archive bytes or path to the archive file

        Returns:
            ArchiveReport describing the archive

        Raises:
            ValidationError: If any limit is violated or the archive is unreadable
        """
        limits = self.limits

        try:
            declared_size = _declared_size(source)
        except OSError as e:
            raise ValidationError(
                f"Cannot read archive: {e}", limit="readable", path=str(source)
            ) from e

        if declared_size > limits.max_upload_size:
            raise ValidationError(
                f"Archive size {declared_size} bytes exceeds max_upload_size "
                f"({limits.max_upload_size} bytes)",
                limit="max_upload_size",
                actual=declared_size,
                allowed=limits.max_upload_size,
            )

        try:
            head = _read_head(source)
        except OSError as e:
            raise ValidationError(
                f"Cannot read archive: {e}", limit="readable", path=str(source)
            ) from e

        if head not in ZIP_SIGNATURES:
            raise ValidationError(
                "Archive does not start with a ZIP signature",
                limit="zip_signature",
                header=head.hex(),
            )

        try:
            with open_archive(source) as zf:
                entries = zf.infolist()
        except (zipfile.BadZipFile, OSError, ValueError) as e:
            raise ValidationError(
                f"Archive central directory is unreadable: {e}",
                limit="zip_structure",
            ) from e

        extracted_size = sum(info.file_size for info in entries)
        if extracted_size > limits.max_extracted_size:
            raise ValidationError(
                f"Uncompressed size {extracted_size} bytes exceeds max_extracted_size "
                f"({limits.max_extracted_size} bytes)",
                limit="max_extracted_size",
                actual=extracted_size,
                allowed=limits.max_extracted_size,
            )

        max_ratio = 0.0
        for info in entries:
            ratio = self._compression_ratio(info)
            if ratio > limits.max_compression_ratio:
                raise ValidationError(
                    f"Entry '{info.filename}' compression ratio {ratio:.1f} exceeds "
                    f"max_compression_ratio ({limits.max_compression_ratio})",
                    limit="max_compression_ratio",
                    entry=info.filename,
                    actual=ratio,
                    allowed=limits.max_compression_ratio,
                )
            max_ratio = max(max_ratio, ratio)

        if len(entries) > limits.max_files_in_zip:
            raise ValidationError(
                f"Archive holds {len(entries)} entries, exceeds max_files_in_zip "
                f"({limits.max_files_in_zip})",
                limit="max_files_in_zip",
                actual=len(entries),
                allowed=limits.max_files_in_zip,
            )

        for info in entries:
            if not is_safe_member_path(info.filename):
                raise ValidationError(
                    f"Entry name '{info.filename}' is not a safe relative path",
                    limit="member_path",
                    entry=info.filename,
                )

        report = ArchiveReport(
            declared_size=declared_size,
            extracted_size=extracted_size,
            file_count=len(entries),
            max_ratio=max_ratio,
        )
        logger.debug(
            f"Archive accepted: {report.file_count} entries, "
            f"{report.extracted_size} bytes uncompressed, max ratio {report.max_ratio:.1f}",
            extra={"extra_fields": {
                "declared_size": declared_size,
                "extracted_size": extracted_size,
                "file_count": report.file_count,
            }}
        )
        return report

    @staticmethod
    def _compression_ratio(info: zipfile.ZipInfo) -> float:
        """Uncompressed/compressed ratio; a non-empty entry stored in zero bytes is infinite."""
        if info.file_size == 0:
            return 0.0
        if info.compress_size == 0:
            return float('inf')
        return info.file_size / info.compress_size
