"""Asset-bearing message parts.

Message contents mix plain strings with typed objects. The typed objects
that reference media are resolved here, once, into a closed set of part
classes so later stages never branch on raw ``content_type`` strings.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Union
from urllib.parse import unquote

from chat_dumpster.conversations import Conversation

FILE_SERVICE_PREFIX = 'file-service://'
SEDIMENT_PREFIX = 'sediment://'
ASSET_PREFIXES = (FILE_SERVICE_PREFIX, SEDIMENT_PREFIX)

IMAGE_CONTENT_TYPE = 'image_asset_pointer'
AUDIO_CONTENT_TYPE = 'audio_asset_pointer'
VIDEO_CONTENT_TYPE = 'video_container_asset_pointer'
TRANSCRIPTION_CONTENT_TYPE = 'audio_transcription'

MEDIA_CONTENT_TYPES = (IMAGE_CONTENT_TYPE, AUDIO_CONTENT_TYPE, VIDEO_CONTENT_TYPE)

# Sediment assets are stored without the audio extension the pointer carries
_SEDIMENT_EXTENSION = re.compile(r'\.(dat|wav|mp3|m4a)$', re.IGNORECASE)


def strip_prefix(pointer: str) -> str:
    """Pointer without its ``file-service://``/``sediment://`` scheme."""
    for prefix in ASSET_PREFIXES:
        if pointer.startswith(prefix):
            return pointer[len(prefix):]
    return pointer


def asset_key(pointer: str) -> str:
    """Lookup key of an asset pointer.

    >>> asset_key("file-service://file-abc123")
    'file-abc123'
    >>> asset_key("sediment://file_00%2001.wav")
    'file_00 01'
    """
    key = strip_prefix(pointer)
    if pointer.startswith(SEDIMENT_PREFIX):
        key = _SEDIMENT_EXTENSION.sub('', key)
    return unquote(key)


@dataclass(frozen=True)
class ImagePart:
    pointer: str
    content_type: str = IMAGE_CONTENT_TYPE
    kind = 'image'


@dataclass(frozen=True)
class AudioPart:
    pointer: str
    content_type: str = AUDIO_CONTENT_TYPE
    kind = 'audio'


@dataclass(frozen=True)
class VideoPart:
    pointer: str
    content_type: str = VIDEO_CONTENT_TYPE
    kind = 'video'


@dataclass(frozen=True)
class TranscriptPart:
    text: str
    content_type: str = TRANSCRIPTION_CONTENT_TYPE
    kind = 'transcript'


@dataclass(frozen=True)
class MissingPart:
    """Media part that carries no pointer at all."""
    content_type: str
    reason: str = 'no_pointer'
    kind = 'missing'


@dataclass(frozen=True)
class UnknownPart:
    """Typed part this pipeline does not interpret; pointer kept if present."""
    content_type: str
    pointer: Optional[str] = None
    kind = 'unknown'


AssetPart = Union[ImagePart, AudioPart, VideoPart, TranscriptPart, MissingPart, UnknownPart]
PointerPart = Union[ImagePart, AudioPart, VideoPart, UnknownPart]

_PART_CLASSES = {
    IMAGE_CONTENT_TYPE: ImagePart,
    AUDIO_CONTENT_TYPE: AudioPart,
    VIDEO_CONTENT_TYPE: VideoPart,
}


def _pointer_of(value: Any) -> Optional[str]:
    """Pointer from either a bare string or an object with ``asset_pointer``."""
    if isinstance(value, str) and value:
        return value
    if isinstance(value, dict):
        pointer = value.get('asset_pointer')
        if isinstance(pointer, str) and pointer:
            return pointer
    return None


def parse_part(part: Any) -> List[AssetPart]:
    """Classify one element of a message's ``content.parts``.

    Plain text yields nothing. One element can yield several parts: a
    real-time audio/video part carries the recorded audio, a video
    container and a list of still frames, in that order.
    """
    if not isinstance(part, dict):
        return []

    content_type = part.get('content_type') or ''

    if content_type == TRANSCRIPTION_CONTENT_TYPE:
        return [TranscriptPart(text=part.get('text') or '')]

    if content_type in _PART_CLASSES:
        pointer = _pointer_of(part)
        if pointer is None:
            return [MissingPart(content_type=content_type)]
        return [_PART_CLASSES[content_type](pointer=pointer)]

    parts: List[AssetPart] = []
    if 'audio_asset_pointer' in part:
        pointer = _pointer_of(part['audio_asset_pointer'])
        if pointer is None:
            parts.append(MissingPart(content_type=AUDIO_CONTENT_TYPE))
        else:
            parts.append(AudioPart(pointer=pointer))

    if 'video_container_asset_pointer' in part:
        pointer = _pointer_of(part['video_container_asset_pointer'])
        if pointer is None:
            parts.append(MissingPart(content_type=VIDEO_CONTENT_TYPE))
        else:
            parts.append(VideoPart(pointer=pointer))

    frames = part.get('frames_asset_pointers')
    if isinstance(frames, list):
        for frame in frames:
            pointer = _pointer_of(frame)
            if pointer is None:
                parts.append(MissingPart(content_type=IMAGE_CONTENT_TYPE, reason='null_frame'))
            else:
                parts.append(ImagePart(pointer=pointer))

    if parts:
        return parts

    if content_type:
        return [UnknownPart(content_type=content_type, pointer=_pointer_of(part))]
    return []


def iter_asset_parts(conversation: Union[Conversation, dict]) -> Iterator[AssetPart]:
    """Walk every message of a conversation and yield its asset parts."""
    if isinstance(conversation, Conversation):
        mapping = conversation.mapping
    else:
        mapping = conversation.get('mapping') if isinstance(conversation, dict) else None
    if not isinstance(mapping, dict):
        return

    for node in mapping.values():
        if not isinstance(node, dict):
            continue
        message = node.get('message')
        if not isinstance(message, dict):
            continue
        content = message.get('content')
        if not isinstance(content, dict):
            continue
        message_parts = content.get('parts')
        if not isinstance(message_parts, list):
            continue
        for raw_part in message_parts:
            yield from parse_part(raw_part)


def has_pointer(part: AssetPart) -> bool:
    return getattr(part, 'pointer', None) is not None
