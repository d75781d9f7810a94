"""Copying of export media into a dumpster."""

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from chat_dumpster.assets.media import is_media_path, media_kind
from chat_dumpster.assets.resolver import ResolvedAsset

logger = logging.getLogger(__name__)


@dataclass
class OrganizeResult:
    """Outcome of one organize pass."""
    copied: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    by_kind: Dict[str, int] = field(default_factory=dict)

    @property
    def media_files(self) -> int:
        return len(self.copied)


class MediaOrganizer:
    """Copies media files from an extracted export into ``<dumpster>/media``.

    Relative paths below the source media directory are preserved.
    Failures are collected per file; the pass itself never raises on a
    single bad file.
    """

    def __init__(self, copy_unreferenced: bool = True):
        self.copy_unreferenced = copy_unreferenced

    def organize(
        self,
        source_dir: Optional[Path],
        target_dir: Path,
        resolved: Iterable[ResolvedAsset] = (),
        exclude: Iterable[Path] = (),
    ) -> OrganizeResult:
        """Copy resolved assets, and optionally all other media, into target_dir.

        Args:
            source_dir: Detected media directory of the export, or None
            target_dir: The dumpster's media directory (created if missing)
            resolved: Assets matched by the resolver
            exclude: Files never to copy (conversations file, HTML index)

        Returns:
            OrganizeResult
        """
        target_dir = Path(target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        result = OrganizeResult()

        if source_dir is None:
            logger.info("No media directory in export, nothing to organize")
            return result

        source_dir = Path(source_dir)
        excluded = {Path(p).resolve() for p in exclude}

        wanted: List[str] = []
        seen: Set[str] = set()
        for asset in resolved:
            if asset.media_path not in seen:
                seen.add(asset.media_path)
                wanted.append(asset.media_path)

        if self.copy_unreferenced:
            for relative in self._media_files(source_dir):
                if relative not in seen:
                    seen.add(relative)
                    wanted.append(relative)

        for relative in wanted:
            source = source_dir / relative
            if source.resolve() in excluded:
                continue
            destination = target_dir / relative
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)
            except OSError as e:
                logger.warning(f"Failed to copy media file {relative}: {e}")
                result.failed.append((relative, str(e)))
                continue

            result.copied.append(relative)
            kind = media_kind(destination)
            result.by_kind[kind] = result.by_kind.get(kind, 0) + 1

        logger.info(
            f"Organized {len(result.copied)} media files ({len(result.failed)} failed)",
            extra={"extra_fields": {"by_kind": result.by_kind, "failed": len(result.failed)}}
        )
        return result

    @staticmethod
    def _media_files(source_dir: Path) -> List[str]:
        files = []
        for dirpath, dirnames, filenames in os.walk(source_dir):
            dirnames.sort()
            for filename in sorted(filenames):
                relative = (Path(dirpath) / filename).relative_to(source_dir).as_posix()
                if is_media_path(relative):
                    files.append(relative)
        return files
