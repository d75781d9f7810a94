"""End-to-end ingestion of a chat export archive into a dumpster."""

import asyncio
import json
import logging
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from chat_dumpster.archive import ArchiveExtractor, ArchiveValidator, create_scratch_dir
from chat_dumpster.archive.validator import ArchiveSource
from chat_dumpster.assets import (
    ASSETS_FILENAME,
    AssetIndex,
    AssetResolver,
    LookupCache,
    MediaOrganizer,
    MissingAsset,
    MissingPart,
    ResolvedAsset,
    iter_asset_parts,
)
from chat_dumpster.assets.parts import has_pointer
from chat_dumpster.common import LogContext, sanitize_dumpster_name
from chat_dumpster.config import DumpsterConfig
from chat_dumpster.conversations import Conversation
from chat_dumpster.dumper import ConversationDumper
from chat_dumpster.errors import DumpsterExistsError, DumpsterValidationError
from chat_dumpster.layout import Layout, LayoutDetector
from chat_dumpster.pipeline.progress import PipelineStage, ProgressCallback, ProgressReporter
from chat_dumpster.validation import CHATS_DIRNAME, MEDIA_DIRNAME, DumpsterValidator

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """State carried through the stages of one run."""

    run_id: str
    dumpster_name: str
    dumpster_dir: Path
    scratch_dir: Optional[Path] = None
    build_dir: Optional[Path] = None
    layout: Optional[Layout] = None
    dumpster_created: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value


@dataclass
class ProcessingStats:
    attempted: int = 0
    processed: int = 0
    errors: int = 0


@dataclass
class PipelineStats:
    chats: int = 0
    assets: int = 0
    media_files: int = 0
    processing_stats: ProcessingStats = field(default_factory=ProcessingStats)
    missing_assets: List[MissingAsset] = field(default_factory=list)
    media_errors: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class PipelineResult:
    success: bool
    dumpster_name: str
    dumpster_dir: Path
    stats: PipelineStats = field(default_factory=PipelineStats)
    warnings: List[str] = field(default_factory=list)


class PipelineOrchestrator:
    """Runs the ingestion stages in order for one archive.

    Stages: validating-archive, extracting, detecting-layout,
    dumping-conversations, resolving-assets, organizing-media,
    validating-dumpster. Any stage error moves the run to ``failed`` and
    is re-raised; the scratch directory is removed on every exit path.
    With overwrite, the replacement is built beside the existing dumpster
    and swapped in only after it validates.

    Args:
        config: Pipeline configuration
        progress_callback: Optional callable receiving ProgressEvent objects
    """

    def __init__(
        self,
        config: Optional[DumpsterConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.config = config or DumpsterConfig()
        self.progress_callback = progress_callback

    def run_sync(
        self,
        archive: ArchiveSource,
        dumpster_name: str,
        overwrite: bool = False,
        verbose: bool = False,
    ) -> PipelineResult:
        """Blocking wrapper around run()."""
        return asyncio.run(self.run(archive, dumpster_name, overwrite=overwrite, verbose=verbose))

    async def run(
        self,
        archive: ArchiveSource,
        dumpster_name: str,
        overwrite: bool = False,
        verbose: bool = False,
    ) -> PipelineResult:
        """Ingest an archive into ``<dumpsters_dir>/<sanitized name>``.

        Args:
            archive: Archive bytes or path to the archive file
            dumpster_name: Requested dumpster name (sanitized before use)
            overwrite: Replace an existing dumpster of the same name once the
                new one has been built and validated
            verbose: Log progress at INFO instead of DEBUG

        Returns:
            PipelineResult

        Raises:
            DumpsterExistsError: Target exists and overwrite is False
            ValidationError, ExtractionError, LayoutDetectionError,
            FormatError, DumpsterValidationError: From the failing stage
        """
        progress = ProgressReporter(self.progress_callback, verbose=verbose)
        progress.enter(PipelineStage.INITIALIZING, "Initializing dumpster processing")

        name = sanitize_dumpster_name(dumpster_name)
        dumpsters_dir = Path(self.config.paths.dumpsters_dir)
        context = PipelineContext(
            run_id=uuid.uuid4().hex[:12],
            dumpster_name=name,
            dumpster_dir=dumpsters_dir / name,
        )

        with LogContext(logger, run_id=context.run_id, dumpster=name):
            if context.dumpster_dir.exists() and not overwrite:
                progress.fail(f"Dumpster '{name}' already exists")
                raise DumpsterExistsError(
                    f"Dumpster '{name}' already exists. Use overwrite to replace it.",
                    dumpster=name,
                    path=str(context.dumpster_dir),
                )

            try:
                return await self._run_stages(archive, context, progress, overwrite)
            except Exception as e:
                logger.error(
                    f"Dumpster processing failed at {progress.stage.value}: {e}",
                    exc_info=True,
                    extra={"extra_fields": {"error_type": type(e).__name__}}
                )
                progress.fail(str(e))
                if context.dumpster_created:
                    await asyncio.to_thread(self._remove_tree, context.build_dir, "partial dumpster")
                raise
            finally:
                if context.scratch_dir is not None:
                    await asyncio.to_thread(self._remove_tree, context.scratch_dir, "scratch directory")

    async def _run_stages(
        self,
        archive: ArchiveSource,
        context: PipelineContext,
        progress: ProgressReporter,
        overwrite: bool,
    ) -> PipelineResult:
        config = self.config
        stats = PipelineStats()
        warnings: List[str] = []

        progress.enter(PipelineStage.VALIDATING_ARCHIVE, "Validating archive")
        report = await asyncio.to_thread(ArchiveValidator(config.limits).validate, archive)
        context.add_metadata("archive", report)

        progress.enter(PipelineStage.EXTRACTING, "Extracting archive")
        context.scratch_dir = await asyncio.to_thread(
            create_scratch_dir, Path(config.paths.temp_dir)
        )
        await asyncio.to_thread(
            ArchiveExtractor(config.limits).extract, archive, context.scratch_dir
        )

        progress.enter(PipelineStage.DETECTING_LAYOUT, "Detecting export layout")
        layout = await asyncio.to_thread(LayoutDetector(config.layout).detect, context.scratch_dir)
        context.layout = layout
        if layout.asset_index_file is None:
            warnings.append("No HTML asset index found in export")
        if layout.media_dir is None:
            warnings.append("No media directory found in export")

        progress.enter(PipelineStage.DUMPING_CONVERSATIONS, "Dumping conversations")
        # An existing dumpster stays untouched until the replacement validates
        if overwrite and context.dumpster_dir.exists():
            context.build_dir = context.dumpster_dir.with_name(
                f".{context.dumpster_name}.{context.run_id}.partial"
            )
        else:
            context.build_dir = context.dumpster_dir
        context.dumpster_created = True
        chats_dir = context.build_dir / CHATS_DIRNAME
        dumper = ConversationDumper(overwrite=False, preserve_original=True)
        dump_result = await dumper.dump(layout.conversations_file, chats_dir)
        stats.processing_stats = ProcessingStats(
            attempted=dump_result.total,
            processed=dump_result.processed,
            errors=dump_result.errors,
        )
        if dump_result.errors:
            warnings.append(f"{dump_result.errors} conversations could not be dumped")

        progress.enter(PipelineStage.RESOLVING_ASSETS, "Resolving assets")
        index = await asyncio.to_thread(self._build_index, layout, context.build_dir, warnings)
        stats.assets = len(index)
        resolved, missing = await asyncio.to_thread(
            self._resolve_assets, dump_result.written, layout, index
        )
        stats.missing_assets = missing
        if missing:
            warnings.append(f"{len(missing)} asset references could not be resolved")

        progress.enter(PipelineStage.ORGANIZING_MEDIA, "Organizing media files")
        organizer = MediaOrganizer(copy_unreferenced=config.assets.copy_unreferenced)
        exclude = [p for p in (layout.conversations_file, layout.asset_index_file) if p is not None]
        organize_result = await asyncio.to_thread(
            organizer.organize,
            layout.media_dir,
            context.build_dir / MEDIA_DIRNAME,
            resolved,
            exclude,
        )
        stats.media_files = organize_result.media_files
        stats.media_errors = organize_result.failed
        if organize_result.failed:
            warnings.append(f"{len(organize_result.failed)} media files could not be copied")

        progress.enter(PipelineStage.VALIDATING_DUMPSTER, "Validating dumpster")
        validation = await asyncio.to_thread(DumpsterValidator().validate, context.build_dir)
        if not validation.is_valid:
            raise DumpsterValidationError(
                f"Dumpster validation failed: {', '.join(validation.errors)}",
                errors=validation.errors,
                path=str(context.build_dir),
            )
        warnings.extend(validation.warnings)

        stats.chats = sum(1 for p in chats_dir.iterdir() if p.suffix == '.json' and p.is_file())

        if context.build_dir != context.dumpster_dir:
            await asyncio.to_thread(
                self._swap_in, context.build_dir, context.dumpster_dir, context.run_id
            )
            context.build_dir = context.dumpster_dir

        progress.enter(PipelineStage.COMPLETED, "Dumpster processing complete")
        logger.info(
            f"Dumpster '{context.dumpster_name}' created in {progress.elapsed()}: "
            f"{stats.chats} chats, {stats.assets} indexed assets, {stats.media_files} media files",
            extra={"extra_fields": {
                "chats": stats.chats,
                "assets": stats.assets,
                "media_files": stats.media_files,
                "missing_assets": len(stats.missing_assets),
            }}
        )
        return PipelineResult(
            success=True,
            dumpster_name=context.dumpster_name,
            dumpster_dir=context.dumpster_dir,
            stats=stats,
            warnings=warnings,
        )

    @staticmethod
    def _build_index(layout: Layout, dumpster_dir: Path, warnings: List[str]) -> AssetIndex:
        if layout.asset_index_file is None:
            index = AssetIndex()
        else:
            try:
                index = AssetIndex.from_html(layout.asset_index_file)
            except OSError as e:
                logger.warning(f"Cannot read asset index {layout.asset_index_file}: {e}")
                warnings.append(f"Asset index unreadable: {e}")
                index = AssetIndex()
        index.save(dumpster_dir / ASSETS_FILENAME)
        return index

    def _resolve_assets(
        self,
        chat_files: List[Path],
        layout: Layout,
        index: AssetIndex,
    ) -> Tuple[List[ResolvedAsset], List[MissingAsset]]:
        """Resolve every asset pointer of the dumped chats against the export's media."""
        resolver = AssetResolver(
            layout.media_dir,
            index,
            cache=LookupCache(self.config.assets.cache_size),
            search_depth=self.config.assets.search_depth,
        )
        resolved: List[ResolvedAsset] = []
        missing: List[MissingAsset] = []

        for chat_file in chat_files:
            try:
                with open(chat_file, 'r', encoding='utf-8') as f:
                    conversation = Conversation.from_record(json.load(f))
            except (OSError, ValueError, TypeError) as e:
                logger.error(f"Cannot read dumped chat {chat_file.name}: {e}")
                continue

            for part in iter_asset_parts(conversation):
                if isinstance(part, MissingPart):
                    missing.append(MissingAsset('', part.content_type, '', part.reason))
                    continue
                if not has_pointer(part):
                    continue
                outcome = resolver.resolve(part)
                if isinstance(outcome, ResolvedAsset):
                    resolved.append(outcome)
                else:
                    missing.append(outcome)

        logger.info(
            f"Resolved {len(resolved)} asset references, {len(missing)} missing "
            f"(cache: {resolver.cache.hits} hits, {resolver.cache.misses} misses)"
        )
        return resolved, missing

    @staticmethod
    def _swap_in(build_dir: Path, dumpster_dir: Path, run_id: str) -> None:
        """Replace dumpster_dir with a freshly built directory."""
        retired = dumpster_dir.with_name(f".{dumpster_dir.name}.{run_id}.old")
        logger.info(f"Replacing existing dumpster {dumpster_dir}")
        dumpster_dir.replace(retired)
        build_dir.replace(dumpster_dir)
        shutil.rmtree(retired)

    @staticmethod
    def _remove_tree(path: Path, what: str) -> None:
        try:
            shutil.rmtree(path)
            logger.debug(f"Removed {what} {path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove {what} {path}: {e}")
