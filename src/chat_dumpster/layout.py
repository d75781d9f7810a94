"""Detection of where the pieces of a chat export live after extraction.

Exports are not consistent about nesting: some archives put everything at
the top, others wrap it in one or more folders, and some spread the
conversations, the HTML viewer and the media across siblings. Detection is
a depth-limited breadth-first scan followed by an ordered list of
strategies; the first one that accounts for every piece wins.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from chat_dumpster.assets.media import is_media_path
from chat_dumpster.config import LayoutConfig
from chat_dumpster.errors import LayoutDetectionError

logger = logging.getLogger(__name__)

CONVERSATIONS_FILENAME = 'conversations.json'
ASSET_INDEX_FILENAME = 'chat.html'
HTML_SUFFIXES = ('.html', '.htm')
MEDIA_SUBDIRS = ('audio', 'dalle-generations')

ASSETS_ASSIGNMENT = re.compile(r'\bassetsJson\s*=')

PIECES = ('conversations_file', 'asset_index_file', 'media_dir')


@dataclass
class Layout:
    """Located pieces of an extracted export."""
    root: Path
    conversations_file: Path
    asset_index_file: Optional[Path]
    media_dir: Optional[Path]
    strategy: str


@dataclass
class _Candidate:
    conversations_file: Optional[Path] = None
    asset_index_file: Optional[Path] = None
    media_dir: Optional[Path] = None

    def missing(self) -> List[str]:
        return [name for name in PIECES if getattr(self, name) is None]


@dataclass
class TreeScan:
    """Breadth-first listing of an extracted tree, with memoized probes."""
    root: Path
    dirs: List[Path] = field(default_factory=list)
    files: List[Path] = field(default_factory=list)
    _probes: Dict[tuple, bool] = field(default_factory=dict, repr=False)

    @classmethod
    def scan(cls, root: Path, max_depth: int) -> "TreeScan":
        root = Path(root)
        tree = cls(root=root)
        level = [root]
        depth = 0
        while level and depth <= max_depth:
            next_level = []
            for directory in level:
                tree.dirs.append(directory)
                try:
                    children = sorted(directory.iterdir(), key=lambda p: p.name)
                except OSError as e:
                    logger.warning(f"Cannot list {directory}: {e}")
                    continue
                for child in children:
                    if child.is_dir():
                        next_level.append(child)
                    elif child.is_file():
                        tree.files.append(child)
            level = next_level
            depth += 1
        return tree

    def depth(self, path: Path) -> int:
        return len(path.relative_to(self.root).parts)

    def files_in(self, directory: Path) -> List[Path]:
        return [f for f in self.files if f.parent == directory]

    def dirs_under(self, directory: Path) -> List[Path]:
        """Directories at or below ``directory``, shallowest first."""
        return [d for d in self.dirs if d == directory or d.is_relative_to(directory)]

    def _memo(self, kind: str, path: Path, probe) -> bool:
        key = (kind, path)
        if key not in self._probes:
            self._probes[key] = probe(path)
        return self._probes[key]

    def is_conversations_file(self, path: Path) -> bool:
        return self._memo('conversations', path, _looks_like_conversations)

    def is_asset_index(self, path: Path) -> bool:
        return self._memo('asset_index', path, _looks_like_asset_index)

    def is_media_dir(self, path: Path) -> bool:
        return self._memo('media', path, self._looks_like_media_dir)

    def _looks_like_media_dir(self, directory: Path) -> bool:
        # Media sit in the directory itself or in its audio/ and dalle-generations/ folders
        for f in self.files:
            try:
                relative = f.relative_to(directory)
            except ValueError:
                continue
            parts = relative.parts
            if len(parts) == 1 or (len(parts) == 2 and parts[0] in MEDIA_SUBDIRS):
                if is_media_path(relative.as_posix()):
                    return True
        return False


def _is_conversation_shaped(record) -> bool:
    if not isinstance(record, dict):
        return False
    if 'mapping' in record:
        return True
    return 'title' in record and ('create_time' in record or 'update_time' in record)


def _looks_like_conversations(path: Path) -> bool:
    if path.suffix.lower() != '.json':
        return False
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.debug(f"Not a conversations file {path}: {e}")
        return False

    if not isinstance(data, list):
        return False
    if not data:
        return path.name == CONVERSATIONS_FILENAME
    return any(_is_conversation_shaped(record) for record in data)


def _looks_like_asset_index(path: Path) -> bool:
    if path.suffix.lower() not in HTML_SUFFIXES:
        return False
    try:
        text = path.read_text(encoding='utf-8', errors='replace')
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return False
    return ASSETS_ASSIGNMENT.search(text) is not None


def _canonical_first(paths: Sequence[Path], tree: TreeScan, canonical: str) -> List[Path]:
    return sorted(paths, key=lambda p: (p.name != canonical, tree.depth(p), p.as_posix()))


class LayoutStrategy:
    """Base class for layout strategies."""

    name = "base"

    def locate(self, tree: TreeScan) -> Optional[_Candidate]:
        raise NotImplementedError


class ExportRootStrategy(LayoutStrategy):
    """A directory holding ``conversations.json`` is the export root.

    The HTML index and the media are looked for in that directory first,
    then below it, then anywhere in the tree.
    """

    name = "export-root"

    def locate(self, tree: TreeScan) -> Optional[_Candidate]:
        best = None
        for f in tree.files:
            if f.name != CONVERSATIONS_FILENAME or not tree.is_conversations_file(f):
                continue

            export_root = f.parent
            candidate = _Candidate(
                conversations_file=f,
                asset_index_file=self._find_index(tree, export_root),
                media_dir=self._find_media(tree, export_root),
            )
            if not candidate.missing():
                return candidate
            if best is None:
                best = candidate
        return best

    def _find_index(self, tree: TreeScan, export_root: Path) -> Optional[Path]:
        local = [f for f in tree.files_in(export_root) if tree.is_asset_index(f)]
        if local:
            return _canonical_first(local, tree, ASSET_INDEX_FILENAME)[0]
        anywhere = [f for f in tree.files if f.suffix.lower() in HTML_SUFFIXES and tree.is_asset_index(f)]
        if anywhere:
            return _canonical_first(anywhere, tree, ASSET_INDEX_FILENAME)[0]
        return None

    def _find_media(self, tree: TreeScan, export_root: Path) -> Optional[Path]:
        for directory in tree.dirs_under(export_root):
            if tree.is_media_dir(directory):
                return directory
        for directory in tree.dirs:
            if tree.is_media_dir(directory):
                return directory
        return None


class ScatteredStrategy(LayoutStrategy):
    """Each piece located on its own, shallowest first, canonical names preferred."""

    name = "scattered"

    def locate(self, tree: TreeScan) -> Optional[_Candidate]:
        candidate = _Candidate()

        json_files = [f for f in tree.files if f.suffix.lower() == '.json']
        for f in _canonical_first(json_files, tree, CONVERSATIONS_FILENAME):
            if tree.is_conversations_file(f):
                candidate.conversations_file = f
                break

        html_files = [f for f in tree.files if f.suffix.lower() in HTML_SUFFIXES]
        for f in _canonical_first(html_files, tree, ASSET_INDEX_FILENAME):
            if tree.is_asset_index(f):
                candidate.asset_index_file = f
                break

        for directory in tree.dirs:
            if tree.is_media_dir(directory):
                candidate.media_dir = directory
                break

        return candidate


DEFAULT_STRATEGIES = (ExportRootStrategy(), ScatteredStrategy())


class LayoutDetector:
    """Runs the layout strategies in order over an extracted tree."""

    def __init__(
        self,
        config: Optional[LayoutConfig] = None,
        strategies: Sequence[LayoutStrategy] = DEFAULT_STRATEGIES,
    ):
        self.config = config or LayoutConfig()
        self.strategies = list(strategies)

    def detect(self, root: Path) -> Layout:
        """Locate the conversations file, HTML asset index and media directory.

        Raises:
            LayoutDetectionError: If a required piece cannot be located
        """
        root = Path(root)
        tree = TreeScan.scan(root, self.config.max_depth)
        logger.debug(f"Scanned {len(tree.dirs)} directories and {len(tree.files)} files under {root}")

        attempts = []
        for strategy in self.strategies:
            candidate = strategy.locate(tree)
            if candidate is None:
                continue
            if not candidate.missing():
                return self._build(root, candidate, strategy)
            attempts.append((strategy, candidate))

        if self.config.allow_partial:
            for strategy, candidate in attempts:
                if candidate.conversations_file is not None:
                    logger.warning(
                        f"Partial export layout, missing: {', '.join(candidate.missing())}"
                    )
                    return self._build(root, candidate, strategy)

        if attempts:
            missing = min((c.missing() for _, c in attempts), key=len)
        else:
            missing = list(PIECES)

        raise LayoutDetectionError(
            f"Could not locate {', '.join(missing)} in extracted archive",
            missing=missing,
            root=str(root),
        )

    @staticmethod
    def _build(root: Path, candidate: _Candidate, strategy: LayoutStrategy) -> Layout:
        layout = Layout(
            root=root,
            conversations_file=candidate.conversations_file,
            asset_index_file=candidate.asset_index_file,
            media_dir=candidate.media_dir,
            strategy=strategy.name,
        )
        logger.info(
            f"Detected export layout via {strategy.name}: "
            f"conversations={layout.conversations_file}, "
            f"index={layout.asset_index_file}, media={layout.media_dir}"
        )
        return layout
