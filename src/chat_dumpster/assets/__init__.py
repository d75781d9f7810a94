"""Asset pointers, the export's asset index, and media handling."""

from .index import AssetIndex, ASSETS_FILENAME
from .media import is_media_path, detect_mime_type, media_kind
from .organizer import MediaOrganizer, OrganizeResult
from .parts import (
    ImagePart,
    AudioPart,
    VideoPart,
    TranscriptPart,
    MissingPart,
    UnknownPart,
    asset_key,
    parse_part,
    iter_asset_parts,
)
from .resolver import AssetResolver, LookupCache, ResolvedAsset, MissingAsset

__all__ = [
    'AssetIndex',
    'ASSETS_FILENAME',
    'is_media_path',
    'detect_mime_type',
    'media_kind',
    'MediaOrganizer',
    'OrganizeResult',
    'ImagePart',
    'AudioPart',
    'VideoPart',
    'TranscriptPart',
    'MissingPart',
    'UnknownPart',
    'asset_key',
    'parse_part',
    'iter_asset_parts',
    'AssetResolver',
    'LookupCache',
    'ResolvedAsset',
    'MissingAsset',
]
