"""Pointer-to-filename index of an export.

The export's HTML viewer embeds the index as a JavaScript object literal
(``var assetsJson = {...}``). It is pulled out once per dumpster and
persisted as ``assets.json`` in the dumpster root.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from chat_dumpster.errors import FormatError

logger = logging.getLogger(__name__)

ASSETS_FILENAME = 'assets.json'

_ASSIGNMENT = re.compile(r'(?:\b(?:var|let|const)\s+)?\bassetsJson\s*=\s*')


class AssetIndex:
    """Read-only mapping of asset pointer (or key) to filename.

    Values in the wild are either a filename string or an object with a
    ``name`` field; ``lookup`` normalizes both to the filename.
    """

    def __init__(self, entries: Optional[Dict[str, Any]] = None):
        self._entries: Dict[str, Any] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.lookup(key) is not None

    def items(self) -> Iterator[Tuple[str, Any]]:
        return iter(self._entries.items())

    @property
    def entries(self) -> Dict[str, Any]:
        return dict(self._entries)

    def lookup(self, key: str) -> Optional[str]:
        """Filename indexed under key, or None."""
        value = self._entries.get(key)
        if isinstance(value, str):
            return value or None
        if isinstance(value, dict):
            name = value.get('name')
            if isinstance(name, str) and name:
                return name
        return None

    @classmethod
    def from_html_text(cls, text: str) -> "AssetIndex":
        """Extract the embedded index from the text of the HTML viewer.

        Returns an empty index when no assignment is present or the object
        literal cannot be decoded.
        """
        match = _ASSIGNMENT.search(text)
        if match is None:
            logger.warning("No assetsJson assignment found in HTML")
            return cls()

        try:
            value, _ = json.JSONDecoder().raw_decode(text, match.end())
        except ValueError as e:
            logger.warning(f"Failed to decode assetsJson: {e}")
            return cls()

        if not isinstance(value, dict):
            logger.warning(f"assetsJson is a {type(value).__name__}, expected an object")
            return cls()

        logger.debug(f"Extracted {len(value)} asset index entries")
        return cls(value)

    @classmethod
    def from_html(cls, path: Path) -> "AssetIndex":
        """Extract the embedded index from an HTML file.

        Raises:
            OSError: If the file cannot be read
        """
        text = Path(path).read_text(encoding='utf-8', errors='replace')
        return cls.from_html_text(text)

    @classmethod
    def load(cls, path: Path) -> "AssetIndex":
        """Load a persisted ``assets.json``; a missing file is an empty index.

        Raises:
            FormatError: If the file exists but is not a JSON object
        """
        path = Path(path)
        if not path.exists():
            return cls()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except ValueError as e:
            raise FormatError(f"Asset index is not valid JSON: {e}", path=str(path)) from e

        if not isinstance(data, dict):
            raise FormatError("Asset index must be a JSON object", path=str(path))
        return cls(data)

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self._entries, f, indent=2, ensure_ascii=False)
        logger.debug(f"Saved {len(self)} asset index entries to {path}")
