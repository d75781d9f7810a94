"""Media file recognition.

Two signals are used: the path patterns chat exports give their media
(``file-`` attachments, ``audio/`` and ``dalle-generations/`` folders,
known extensions) and, for classification of files already on disk, the
magic bytes read by the filetype library.
"""

import re
from pathlib import Path

import filetype

IMAGE_EXTENSIONS = ('.jpeg', '.jpg', '.png', '.webp', '.gif')
AUDIO_EXTENSIONS = ('.dat', '.wav', '.mp3', '.m4a', '.ogg')
VIDEO_EXTENSIONS = ('.mp4', '.webm', '.mov')

MEDIA_PATTERNS = (
    re.compile(r'(^|/)file-'),
    re.compile(r'(^|/)audio/'),
    re.compile(r'(^|/)dalle-generations/'),
    re.compile(r'\.(jpeg|jpg|png|gif|webp)$', re.IGNORECASE),
    re.compile(r'\.(dat|wav|mp3|m4a|ogg)$', re.IGNORECASE),
    re.compile(r'\.(mp4|webm|mov)$', re.IGNORECASE),
)

UNKNOWN_MIME = 'application/octet-stream'


def is_media_path(relative_path: str) -> bool:
    """Check a forward-slash path relative to a media root against the media patterns.

    >>> is_media_path("dalle-generations/abc.webp")
    True
    >>> is_media_path("chat.html")
    False
    """
    return any(pattern.search(relative_path) for pattern in MEDIA_PATTERNS)


def detect_mime_type(file_path: Path) -> str:
    """
    Detect MIME type of a file by reading its magic bytes.

    Args:
        file_path: Path to the file

    Returns:
        MIME type string (e.g., 'image/png', 'audio/x-wav'), or
        'application/octet-stream' if the type cannot be determined

    Raises:
        OSError: If file cannot be read
    """
    kind = filetype.guess(str(file_path))
    if kind is not None:
        return kind.mime
    return UNKNOWN_MIME


def media_kind(file_path: Path) -> str:
    """Classify a file as 'image', 'audio', 'video' or 'other'.

    Magic bytes decide when they are recognized; otherwise the extension
    does. Exports store voice clips as ``.dat`` files that filetype does not
    know, so the extension fallback matters.
    """
    try:
        mime = detect_mime_type(file_path)
    except OSError:
        mime = UNKNOWN_MIME

    for kind in ('image', 'audio', 'video'):
        if mime.startswith(f'{kind}/'):
            return kind

    suffix = Path(file_path).suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return 'image'
    if suffix in AUDIO_EXTENSIONS:
        return 'audio'
    if suffix in VIDEO_EXTENSIONS:
        return 'video'
    return 'other'
