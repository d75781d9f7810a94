"""Resolution of asset pointers to files in an export's media tree."""

import logging
import os
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from chat_dumpster.assets.index import AssetIndex
from chat_dumpster.assets.media import IMAGE_EXTENSIONS
from chat_dumpster.assets.parts import PointerPart, asset_key, strip_prefix

logger = logging.getLogger(__name__)

MEDIA_DIRNAME = 'media'


@dataclass(frozen=True)
class ResolvedAsset:
    """Pointer matched to a file.

    ``media_path`` is relative to the media root; ``path`` is the same
    file relative to the dumpster root.
    """
    pointer: str
    content_type: Optional[str]
    key: str
    file: Path
    media_path: str
    strategy: str

    @property
    def path(self) -> str:
        return f"{MEDIA_DIRNAME}/{self.media_path}"


@dataclass(frozen=True)
class MissingAsset:
    """Pointer no strategy could match."""
    pointer: str
    content_type: Optional[str]
    key: str
    reason: str


Resolution = Union[ResolvedAsset, MissingAsset]


class LookupCache:
    """Bounded cache of directory search results.

    Keyed by (directory, filename, recursive). When full, the oldest entry
    is evicted first regardless of how often it was hit.
    """

    def __init__(self, capacity: int = 1000):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: "OrderedDict[Tuple[str, str, bool], List[Path]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Tuple[str, str, bool]) -> bool:
        return key in self._entries

    def get(self, key: Tuple[str, str, bool]) -> Optional[List[Path]]:
        result = self._entries.get(key)
        if result is None:
            self.misses += 1
        else:
            self.hits += 1
        return result

    def put(self, key: Tuple[str, str, bool], value: List[Path]) -> None:
        if key not in self._entries and len(self._entries) >= self.capacity:
            self._entries.popitem(last=False)
        self._entries[key] = value


def find_files(directory: Path, name: str, recursive: bool) -> List[Path]:
    """Files under directory whose name equals or starts with ``name``.

    Exact matches come first, then prefix matches; each group is ordered
    by path.
    """
    if not name or not directory.is_dir():
        return []

    exact: List[Path] = []
    prefixed: List[Path] = []

    if recursive:
        walker = os.walk(directory)
    else:
        with os.scandir(directory) as it:
            walker = [(str(directory), [], [e.name for e in it if e.is_file()])]

    for dirpath, dirnames, filenames in walker:
        dirnames.sort()
        for filename in sorted(filenames):
            if filename == name:
                exact.append(Path(dirpath) / filename)
            elif filename.startswith(name):
                prefixed.append(Path(dirpath) / filename)

    exact.sort(key=lambda p: p.as_posix())
    prefixed.sort(key=lambda p: p.as_posix())
    return exact + prefixed


class AssetResolver:
    """Matches asset pointers to files below a media root.

    Order of attempts, first hit wins:

    1. the index entry for the full pointer, then for the bare key,
       searched for anywhere below the media root
    2. the key, then the key with each image extension, in the media root
       and its subdirectories down to ``search_depth``
    3. the pointer minus its scheme, anywhere below the media root

    A pointer nothing matches comes back as a MissingAsset value.
    """

    def __init__(
        self,
        media_root: Optional[Path],
        index: Optional[AssetIndex] = None,
        cache: Optional[LookupCache] = None,
        search_depth: int = 1,
    ):
        self.media_root = Path(media_root) if media_root is not None else None
        self.index = index or AssetIndex()
        self.cache = cache if cache is not None else LookupCache()
        self.search_depth = search_depth
        self._search_dirs: Optional[List[Path]] = None

    def resolve(
        self,
        pointer: Union[str, PointerPart],
        content_type: Optional[str] = None,
    ) -> Resolution:
        """Resolve a pointer string or a parsed pointer part."""
        if not isinstance(pointer, str):
            content_type = content_type or pointer.content_type
            pointer = pointer.pointer

        key = asset_key(pointer)

        if self.media_root is None or not self.media_root.is_dir():
            return MissingAsset(pointer, content_type, key, reason='no_media_dir')

        for index_key in (pointer, key):
            indexed_name = self.index.lookup(index_key)
            if indexed_name:
                found = self._search(self.media_root, indexed_name, recursive=True)
                if found:
                    return self._resolved(pointer, content_type, key, found, 'index')

        for candidate in [key] + [key + ext for ext in IMAGE_EXTENSIONS]:
            for directory in self._candidate_dirs():
                found = self._search(directory, candidate, recursive=False)
                if found:
                    return self._resolved(pointer, content_type, key, found, 'candidate')

        found = self._search(self.media_root, strip_prefix(pointer), recursive=True)
        if found:
            return self._resolved(pointer, content_type, key, found, 'direct')

        logger.debug(f"Asset not found: {pointer}")
        return MissingAsset(pointer, content_type, key, reason='file_not_found')

    def _candidate_dirs(self) -> List[Path]:
        if self._search_dirs is None:
            dirs = [self.media_root]
            level = [self.media_root]
            for _ in range(self.search_depth):
                next_level = []
                for directory in level:
                    next_level.extend(sorted(p for p in directory.iterdir() if p.is_dir()))
                dirs.extend(next_level)
                level = next_level
            self._search_dirs = dirs
        return self._search_dirs

    def _search(self, directory: Path, name: str, recursive: bool) -> Optional[Path]:
        cache_key = (str(directory), name, recursive)
        matches = self.cache.get(cache_key)
        if matches is None:
            matches = find_files(directory, name, recursive)
            self.cache.put(cache_key, matches)
        return matches[0] if matches else None

    def _resolved(
        self,
        pointer: str,
        content_type: Optional[str],
        key: str,
        file: Path,
        strategy: str,
    ) -> ResolvedAsset:
        media_path = file.relative_to(self.media_root).as_posix()
        logger.debug(f"Resolved {pointer} -> {media_path} ({strategy})")
        return ResolvedAsset(
            pointer=pointer,
            content_type=content_type,
            key=key,
            file=file,
            media_path=media_path,
            strategy=strategy,
        )
