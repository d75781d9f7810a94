"""Splitting a conversations export into one JSON file per conversation."""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Set

import aiofiles
import aiofiles.os

from chat_dumpster.conversations import Conversation
from chat_dumpster.errors import FormatError

logger = logging.getLogger(__name__)

SUBDIR_NAME = 'conversations'

_NUMBERED_STEM = re.compile(r'^(.+)_(\d+)$')


@dataclass
class DumpResult:
    """Counters of one dump run.

    ``processed`` counts files written (collision suffixes included);
    ``collisions_resolved`` is the subset of those that needed a suffix.
    """
    processed: int = 0
    skipped_duplicates: int = 0
    collisions_resolved: int = 0
    errors: int = 0
    total: int = 0
    written: List[Path] = field(default_factory=list)


class ConversationDumper:
    """Writes each conversation of an export to ``<date>_<title>[_<n>].json``.

    Re-dumping the same export is idempotent: a conversation whose
    identity matches the base file or any of its numbered variants is
    skipped. A conversation whose base name is free is written under it;
    one landing on a taken name gets the next number after the highest
    one in use. The output directory is listed once per run.

    Args:
        overwrite: Replace files left by an earlier run instead of comparing
            them. Files written during the current run are never replaced.
        preserve_original: Keep the source conversations file. When False it
            is deleted after a run that wrote at least one file.
        create_subdirs: Write into a ``conversations`` subdirectory of the
            output directory.
    """

    def __init__(
        self,
        overwrite: bool = False,
        preserve_original: bool = True,
        create_subdirs: bool = False,
    ):
        self.overwrite = overwrite
        self.preserve_original = preserve_original
        self.create_subdirs = create_subdirs

    async def dump(self, conversations_file: Path, output_dir: Path) -> DumpResult:
        """Dump every conversation of conversations_file into output_dir.

        Raises:
            FormatError: If the file cannot be read, is not JSON, or its
                top-level value is not an array
        """
        conversations_file = Path(conversations_file)
        target_dir = Path(output_dir)
        if self.create_subdirs:
            target_dir = target_dir / SUBDIR_NAME

        records = await self._load(conversations_file)
        logger.info(f"Found {len(records)} conversations in {conversations_file.name}")

        result = DumpResult(total=len(records))
        await aiofiles.os.makedirs(target_dir, exist_ok=True)

        conversations = []
        for index, record in enumerate(records):
            try:
                conversations.append(Conversation.from_record(record))
            except TypeError as e:
                logger.error(f"Skipping record #{index}: {e}")
                result.errors += 1

        # Newest first; sorted() is stable so ties keep export order
        conversations = sorted(conversations, key=lambda c: c.sort_timestamp, reverse=True)

        names = await _NameIndex.scan(target_dir)
        written_this_run: Set[Path] = set()
        for conversation in conversations:
            try:
                await self._dump_one(conversation, target_dir, result, names, written_this_run)
            except (OSError, ValueError, TypeError) as e:
                logger.error(
                    f"Error dumping conversation '{conversation.title}': {e}",
                    extra={"extra_fields": {"conversation_id": conversation.conversation_id}}
                )
                result.errors += 1

        if not self.preserve_original and result.processed > 0:
            try:
                await aiofiles.os.remove(conversations_file)
                logger.debug(f"Removed source file {conversations_file}")
            except OSError as e:
                logger.warning(f"Failed to remove source file {conversations_file}: {e}")

        logger.info(
            f"Dump completed: {result.processed} written, "
            f"{result.skipped_duplicates} duplicates skipped, "
            f"{result.collisions_resolved} collisions resolved, {result.errors} errors",
            extra={"extra_fields": {
                "processed": result.processed,
                "skipped_duplicates": result.skipped_duplicates,
                "collisions_resolved": result.collisions_resolved,
                "errors": result.errors,
                "total": result.total,
            }}
        )
        return result

    async def _load(self, path: Path) -> list:
        try:
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                text = await f.read()
        except OSError as e:
            raise FormatError(f"Cannot read conversations file: {e}", path=str(path)) from e

        try:
            data = json.loads(text)
        except ValueError as e:
            raise FormatError(f"Conversations file is not valid JSON: {e}", path=str(path)) from e

        if not isinstance(data, list):
            raise FormatError(
                f"Expected an array of conversations, got {type(data).__name__}",
                path=str(path),
            )
        return data

    async def _dump_one(
        self,
        conversation: Conversation,
        target_dir: Path,
        result: DumpResult,
        names: '_NameIndex',
        written_this_run: Set[Path],
    ) -> None:
        base = conversation.base_filename()
        base_path = target_dir / f"{base}.json"
        variants = names.variants(base)

        if not variants:
            await self._write(base_path, conversation, result, names, written_this_run)
            return

        if self.overwrite and 0 in variants and base_path not in written_this_run:
            await self._write(base_path, conversation, result, names, written_this_run)
            return

        for path in variants.values():
            existing = await self._read_existing(path)
            if conversation.is_same_as(existing):
                logger.debug(f"Skipping duplicate of {path.name}")
                result.skipped_duplicates += 1
                return

        if 0 not in variants:
            await self._write(base_path, conversation, result, names, written_this_run)
            return

        suffix = max(variants) + 1
        target = target_dir / f"{base}_{suffix}.json"
        await self._write(target, conversation, result, names, written_this_run)
        result.collisions_resolved += 1
        logger.debug(f"Name collision on {base}.json resolved as {target.name}")

    @staticmethod
    async def _read_existing(path: Path) -> Conversation:
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            text = await f.read()
        return Conversation.from_record(json.loads(text))

    @staticmethod
    async def _write(
        path: Path,
        conversation: Conversation,
        result: DumpResult,
        names: '_NameIndex',
        written_this_run: Set[Path],
    ) -> None:
        payload = json.dumps(conversation.raw, indent=2, ensure_ascii=False)
        async with aiofiles.open(path, 'w', encoding='utf-8') as f:
            await f.write(payload)
        names.add(path)
        written_this_run.add(path)
        result.written.append(path)
        result.processed += 1


class _NameIndex:
    """In-memory view of the ``<base>[_<n>].json`` files of one directory.

    A stem ending in ``_<digits>`` is recorded both as itself and as a
    numbered variant of the shorter base, since titles may end in digits.
    """

    def __init__(self):
        self._by_base: Dict[str, Dict[int, Path]] = {}

    @classmethod
    async def scan(cls, directory: Path) -> '_NameIndex':
        index = cls()
        for name in await aiofiles.os.listdir(directory):
            if name.endswith('.json'):
                index.add(directory / name)
        return index

    def add(self, path: Path) -> None:
        stem = path.name[:-len('.json')]
        self._by_base.setdefault(stem, {})[0] = path
        match = _NUMBERED_STEM.match(stem)
        if match:
            self._by_base.setdefault(match.group(1), {})[int(match.group(2))] = path

    def variants(self, base: str) -> Dict[int, Path]:
        """Existing files for a base name keyed by suffix; the bare base file is 0."""
        return dict(sorted(self._by_base.get(base, {}).items()))


async def dump_conversations(
    conversations_file: Path,
    output_dir: Path,
    overwrite: bool = False,
    preserve_original: bool = True,
    create_subdirs: bool = False,
) -> DumpResult:
    """Convenience wrapper around ConversationDumper.dump."""
    dumper = ConversationDumper(
        overwrite=overwrite,
        preserve_original=preserve_original,
        create_subdirs=create_subdirs,
    )
    return await dumper.dump(conversations_file, output_dir)
