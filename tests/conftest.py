"""Shared fixtures: synthetic conversations and export archives."""

import io
import json
import zipfile
from pathlib import Path

import pytest

from chat_dumpster.config import DumpsterConfig, PathsConfig

# Smallest byte strings filetype recognizes
PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 32
WEBP_BYTES = b'RIFF\x24\x00\x00\x00WEBPVP8 ' + b'\x00' * 24


def _conversation(
    title="Test chat",
    update_time=1700000000.0,
    create_time=1699990000.0,
    node_ids=("root", "n1"),
    parts=None,
    conversation_id=None,
):
    mapping = {}
    for node_id in node_ids:
        mapping[node_id] = {"id": node_id, "message": None, "parent": None, "children": []}

    if parts:
        mapping[node_ids[-1]]["message"] = {
            "id": node_ids[-1],
            "author": {"role": "user"},
            "content": {"content_type": "multimodal_text", "parts": list(parts)},
        }

    record = {
        "title": title,
        "create_time": create_time,
        "update_time": update_time,
        "mapping": mapping,
    }
    if conversation_id:
        record["conversation_id"] = conversation_id
    return record


@pytest.fixture
def make_conversation():
    """Factory for conversation records in export shape."""
    return _conversation


@pytest.fixture
def build_zip():
    """Factory building a ZIP archive in memory from {name: bytes|str}."""

    def _build(files, compression=zipfile.ZIP_STORED):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', compression) as zf:
            for name, content in files.items():
                zf.writestr(zipfile.ZipInfo(name), content, compress_type=compression)
        return buffer.getvalue()

    return _build


@pytest.fixture
def export_files(make_conversation):
    """Contents of a small but complete chat export."""
    conversations = [
        make_conversation(
            title="Photo chat",
            update_time=1700000000,
            node_ids=("a1", "a2"),
            parts=[
                "look at this",
                {"content_type": "image_asset_pointer", "asset_pointer": "file-service://file-abc123"},
            ],
        ),
        make_conversation(
            title="Voice chat",
            update_time=1690000000,
            node_ids=("b1", "b2"),
            parts=[
                {"content_type": "audio_asset_pointer", "asset_pointer": "sediment://file_missing.wav"},
                {"content_type": "audio_transcription", "text": "hello"},
            ],
        ),
    ]
    html = (
        "<html><body><script>\n"
        'var assetsJson = {"file-service://file-abc123": "file-abc123-photo.png"};\n'
        "</script></body></html>"
    )
    return {
        "conversations.json": json.dumps(conversations),
        "chat.html": html,
        "file-abc123-photo.png": PNG_BYTES,
        "dalle-generations/file-dalle1.webp": WEBP_BYTES,
    }


@pytest.fixture
def dumpster_config(tmp_path):
    """Configuration writing dumpsters and scratch dirs under tmp_path."""
    return DumpsterConfig(
        paths=PathsConfig(
            dumpsters_dir=str(tmp_path / "dumpsters"),
            temp_dir=str(tmp_path / "temp"),
        )
    )


def write_tree(root: Path, files: dict) -> Path:
    """Write {relative path: bytes|str} under root."""
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding='utf-8')
    return root


@pytest.fixture
def make_tree():
    return write_tree
