"""Path and name utilities shared across the pipeline."""

import re
import unicodedata
from pathlib import PurePosixPath

TITLE_MAX_LENGTH = 100
DUMPSTER_NAME_MAX_LENGTH = 50

_TITLE_INVALID_CHARS = re.compile(r'[^\w\s-]')
_DUMPSTER_INVALID_CHARS = re.compile(r'[^A-Za-z0-9_-]')
_WHITESPACE_RUN = re.compile(r'\s+')
_UNSAFE_MEMBER_CHARS = ('\0', '\r', '\n', '\\')


def is_safe_member_path(member_path: str) -> bool:
    """Check that an archive member path cannot escape the extraction root.

    Rejects absolute paths, drive letters, parent-directory segments,
    backslashes and control characters.
    """
    if not member_path or not isinstance(member_path, str):
        return False

    if any(ch in member_path for ch in _UNSAFE_MEMBER_CHARS):
        return False

    if member_path.startswith('/') or re.match(r'^[A-Za-z]:', member_path):
        return False

    return '..' not in PurePosixPath(member_path).parts


def sanitize_title(raw_title: str | None) -> str:
    """Turn a conversation title into a filename fragment.

    Drops everything except word characters, whitespace and dashes,
    collapses whitespace runs to a single underscore and truncates.

    >>> sanitize_title("Hello, World!  again")
    'Hello_World_again'
    >>> sanitize_title("???")
    'untitled'
    """
    title = unicodedata.normalize('NFC', raw_title or '')
    title = _TITLE_INVALID_CHARS.sub('', title).strip()
    title = _WHITESPACE_RUN.sub('_', title)
    title = title[:TITLE_MAX_LENGTH]
    return title or 'untitled'


def sanitize_dumpster_name(name: str | None) -> str:
    """Turn a user supplied dumpster name into a directory name.

    Only ASCII letters, digits, underscores and dashes survive, the name
    must start with a letter, and the result is lowercased.

    >>> sanitize_dumpster_name("My Chat History")
    'my_chat_history'
    >>> sanitize_dumpster_name("2024 export")
    '_024_export'
    """
    sanitized = (name or '').strip()
    sanitized = _WHITESPACE_RUN.sub('_', sanitized)
    sanitized = _DUMPSTER_INVALID_CHARS.sub('_', sanitized)
    sanitized = re.sub(r'^[^A-Za-z]', '_', sanitized)
    sanitized = sanitized[:DUMPSTER_NAME_MAX_LENGTH].lower()
    return sanitized or 'untitled_dumpster'
