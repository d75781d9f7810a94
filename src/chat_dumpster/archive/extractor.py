"""Extraction of validated archives into per-run scratch directories."""

import logging
import re
import secrets
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from chat_dumpster.archive.validator import ArchiveSource, open_archive
from chat_dumpster.config import LimitsConfig
from chat_dumpster.errors import ExtractionError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192

# Windows invalid filename characters
WINDOWS_INVALID_CHARS = r'[<>:"|?*]'
WINDOWS_RESERVED_NAMES = {
    'CON', 'PRN', 'AUX', 'NUL',
    'COM1', 'COM2', 'COM3', 'COM4', 'COM5', 'COM6', 'COM7', 'COM8', 'COM9',
    'LPT1', 'LPT2', 'LPT3', 'LPT4', 'LPT5', 'LPT6', 'LPT7', 'LPT8', 'LPT9'
}


def sanitize_filename(filename: str) -> tuple[str, bool]:
    """Sanitize an archive member name for Windows compatibility.

    Args:
        filename: Member name from the archive

    Returns:
        Tuple of (sanitized_filename, was_modified)
    """
    original = filename
    filename = re.sub(WINDOWS_INVALID_CHARS, '_', filename)

    sanitized_parts = []
    for part in filename.split('/'):
        if not part:
            sanitized_parts.append(part)
            continue

        # Windows drops trailing dots and spaces
        stripped = part.rstrip('. ')
        part = stripped or '_'

        if part.split('.')[0].upper() in WINDOWS_RESERVED_NAMES:
            part = f"_{part}"

        sanitized_parts.append(part)

    filename = '/'.join(sanitized_parts)
    return filename, filename != original


def create_scratch_dir(temp_root: Path) -> Path:
    """Create a fresh ``dumpster_<epoch-ms>_<random>`` directory under temp_root."""
    temp_root = Path(temp_root)
    temp_root.mkdir(parents=True, exist_ok=True)

    while True:
        name = f"dumpster_{int(time.time() * 1000)}_{secrets.token_hex(3)}"
        scratch = temp_root / name
        try:
            scratch.mkdir()
        except FileExistsError:
            continue
        logger.debug(f"Created scratch directory {scratch}")
        return scratch


@dataclass
class ExtractionResult:
    """Summary of one extraction."""
    root: Path
    files_extracted: int
    bytes_written: int
    sanitized_names: int


class ArchiveExtractor:
    """Extracts a validated ZIP archive into a scratch directory.

    The central directory was already checked by ArchiveValidator, but the
    sizes it declares are not trusted: bytes are counted as they are written
    and extraction stops once ``max_extracted_size`` is exceeded.
    """

    def __init__(self, limits: Optional[LimitsConfig] = None):
        self.limits = limits or LimitsConfig()

    def extract(
        self,
        source: ArchiveSource,
        target_dir: Path,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> ExtractionResult:
        """Extract every entry of the archive into target_dir.

        Args:
            source: Archive bytes or path to the archive file
            target_dir: Existing scratch directory to extract into
            progress_callback: Optional callback(current, total)

        Returns:
            ExtractionResult

        Raises:
            ExtractionError: On any I/O failure, unsafe target or size overrun
        """
        target_dir = Path(target_dir)
        root = target_dir.resolve()
        bytes_written = 0
        files_extracted = 0
        sanitized = 0

        try:
            with open_archive(source) as zip_ref:
                members = zip_ref.infolist()
                total = len(members)
                logger.debug(f"Extracting {total} entries into {target_dir}")

                for i, info in enumerate(members):
                    sanitized_member, was_sanitized = sanitize_filename(info.filename)
                    if was_sanitized:
                        sanitized += 1
                        logger.info(f"Sanitized filename: '{info.filename}' -> '{sanitized_member}'")

                    target_path = self._safe_target(root, sanitized_member)

                    if info.is_dir():
                        target_path.mkdir(parents=True, exist_ok=True)
                    else:
                        target_path.parent.mkdir(parents=True, exist_ok=True)
                        bytes_written += self._copy_member(zip_ref, info, target_path, bytes_written)
                        files_extracted += 1

                    if (i + 1) % 100 == 0:
                        logger.info(f"Extracted {i + 1}/{total} entries")

                    if progress_callback:
                        progress_callback(i + 1, total)

        except ExtractionError:
            raise
        except (OSError, zipfile.BadZipFile, RuntimeError, ValueError) as e:
            raise ExtractionError(
                f"Failed to extract archive: {e}", target_dir=str(target_dir)
            ) from e

        logger.info(
            f"Extracted {files_extracted} files ({bytes_written} bytes)",
            extra={"extra_fields": {
                "files_extracted": files_extracted,
                "bytes_written": bytes_written,
                "sanitized_names": sanitized,
            }}
        )
        return ExtractionResult(
            root=target_dir,
            files_extracted=files_extracted,
            bytes_written=bytes_written,
            sanitized_names=sanitized,
        )

    def _copy_member(
        self,
        zip_ref: zipfile.ZipFile,
        info: zipfile.ZipInfo,
        target_path: Path,
        already_written: int,
    ) -> int:
        """Stream one entry to disk in fixed-size chunks; returns bytes written."""
        limit = self.limits.max_extracted_size
        written = 0

        with zip_ref.open(info) as source, open(target_path, 'wb') as target:
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if already_written + written > limit:
                    raise ExtractionError(
                        f"Extracted data exceeds max_extracted_size ({limit} bytes) "
                        f"while writing '{info.filename}'",
                        limit="max_extracted_size",
                        entry=info.filename,
                    )
                target.write(chunk)

        return written

    @staticmethod
    def _safe_target(root: Path, member_path: str) -> Path:
        """Resolve member_path under root, refusing anything that lands outside it."""
        target_path = (root / member_path).resolve()
        if target_path != root and not target_path.is_relative_to(root):
            raise ExtractionError(
                f"Entry '{member_path}' escapes the extraction directory",
                entry=member_path,
            )
        return target_path
