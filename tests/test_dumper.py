"""Tests for splitting an export into per-conversation files."""

import json

import aiofiles.os
import pytest

from chat_dumpster.dumper import ConversationDumper, dump_conversations
from chat_dumpster.errors import FormatError


def _write_export(path, records):
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


def _names(directory):
    return sorted(p.name for p in directory.iterdir())


class TestConversationDumper:
    """Test naming, collisions and idempotence."""

    @pytest.mark.asyncio
    async def test_writes_one_file_per_conversation(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "conversations.json", [
            make_conversation(title="First", update_time=1700000000),
            make_conversation(title="Second", update_time=1690000000),
        ])
        out = tmp_path / "chats"

        result = await ConversationDumper().dump(source, out)

        assert _names(out) == ["2023.07.22_Second.json", "2023.11.14_First.json"]
        assert result.processed == 2
        assert result.total == 2
        assert result.errors == 0
        written = json.loads((out / "2023.11.14_First.json").read_text(encoding="utf-8"))
        assert written == make_conversation(title="First", update_time=1700000000)

    @pytest.mark.asyncio
    async def test_output_is_indented_utf8(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [make_conversation(title="Café")])
        result = await ConversationDumper().dump(source, tmp_path / "out")
        text = result.written[0].read_text(encoding="utf-8")
        assert "Café" in text
        assert text.startswith('{\n  "title"')

    @pytest.mark.asyncio
    async def test_written_newest_first(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [
            make_conversation(title="Old", update_time=100),
            make_conversation(title="New", update_time=300),
            make_conversation(title="Middle", update_time=None, create_time=200),
        ])
        result = await ConversationDumper().dump(source, tmp_path / "out")
        assert [p.name.split("_", 1)[1] for p in result.written] == [
            "New.json", "Middle.json", "Old.json"
        ]

    @pytest.mark.asyncio
    async def test_redump_is_idempotent(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [
            make_conversation(title="Same"),
            make_conversation(title="Other", update_time=1600000000),
        ])
        out = tmp_path / "out"
        await ConversationDumper().dump(source, out)
        before = _names(out)

        second = await ConversationDumper().dump(source, out)

        assert second.processed == 0
        assert second.skipped_duplicates == 2
        assert _names(out) == before

    @pytest.mark.asyncio
    async def test_name_collision_gets_suffix(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [
            make_conversation(title="Notes", node_ids=("a",)),
            make_conversation(title="Notes", node_ids=("b",)),
        ])
        out = tmp_path / "out"
        result = await ConversationDumper().dump(source, out)

        assert _names(out) == ["2023.11.14_Notes.json", "2023.11.14_Notes_1.json"]
        assert result.processed == 2
        assert result.collisions_resolved == 1

    @pytest.mark.asyncio
    async def test_suffix_follows_highest_existing(self, tmp_path, make_conversation):
        out = tmp_path / "out"
        out.mkdir()
        (out / "2023.11.14_Notes.json").write_text(
            json.dumps(make_conversation(title="Notes", node_ids=("a",))), encoding="utf-8"
        )
        (out / "2023.11.14_Notes_3.json").write_text(
            json.dumps(make_conversation(title="Notes", node_ids=("c",))), encoding="utf-8"
        )
        source = _write_export(tmp_path / "c.json", [make_conversation(title="Notes", node_ids=("d",))])

        result = await ConversationDumper().dump(source, out)

        assert result.written == [out / "2023.11.14_Notes_4.json"]

    @pytest.mark.asyncio
    async def test_duplicate_of_suffixed_variant_skipped(self, tmp_path, make_conversation):
        out = tmp_path / "out"
        out.mkdir()
        (out / "2023.11.14_Notes.json").write_text(
            json.dumps(make_conversation(title="Notes", node_ids=("a",))), encoding="utf-8"
        )
        (out / "2023.11.14_Notes_1.json").write_text(
            json.dumps(make_conversation(title="Notes", node_ids=("b",))), encoding="utf-8"
        )
        source = _write_export(tmp_path / "c.json", [make_conversation(title="Notes", node_ids=("b",))])

        result = await ConversationDumper().dump(source, out)

        assert result.processed == 0
        assert result.skipped_duplicates == 1

    @pytest.mark.asyncio
    async def test_free_base_name_reused_when_only_suffix_exists(self, tmp_path, make_conversation):
        first = make_conversation(title="Same", node_ids=("a",))
        second = make_conversation(title="Same", node_ids=("b",))
        out = tmp_path / "out"
        await ConversationDumper().dump(_write_export(tmp_path / "c.json", [first, second]), out)
        (out / "2023.11.14_Same.json").unlink()

        result = await ConversationDumper().dump(_write_export(tmp_path / "c.json", [first]), out)

        assert result.written == [out / "2023.11.14_Same.json"]
        assert result.collisions_resolved == 0
        assert _names(out) == ["2023.11.14_Same.json", "2023.11.14_Same_1.json"]

    @pytest.mark.asyncio
    async def test_suffixed_duplicate_skipped_when_base_free(self, tmp_path, make_conversation):
        record = make_conversation(title="Same", node_ids=("b",))
        out = tmp_path / "out"
        out.mkdir()
        (out / "2023.11.14_Same_1.json").write_text(json.dumps(record), encoding="utf-8")

        result = await ConversationDumper().dump(_write_export(tmp_path / "c.json", [record]), out)

        assert result.processed == 0
        assert result.skipped_duplicates == 1
        assert _names(out) == ["2023.11.14_Same_1.json"]

    @pytest.mark.asyncio
    async def test_title_ending_in_digits(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [
            make_conversation(title="Notes 1", node_ids=("a",)),
            make_conversation(title="Notes", node_ids=("b",)),
            make_conversation(title="Notes", node_ids=("c",)),
        ])
        out = tmp_path / "out"

        result = await ConversationDumper().dump(source, out)

        assert result.processed == 3
        assert _names(out) == [
            "2023.11.14_Notes.json", "2023.11.14_Notes_1.json", "2023.11.14_Notes_2.json"
        ]

    @pytest.mark.asyncio
    async def test_output_directory_listed_once(self, tmp_path, make_conversation, monkeypatch):
        calls = []
        listdir = aiofiles.os.listdir

        async def counting_listdir(path):
            calls.append(path)
            return await listdir(path)

        monkeypatch.setattr(aiofiles.os, "listdir", counting_listdir)
        records = [make_conversation(title="Notes", node_ids=(f"n{i}",)) for i in range(50)]

        result = await ConversationDumper().dump(_write_export(tmp_path / "c.json", records), tmp_path / "out")

        assert result.processed == 50
        assert result.collisions_resolved == 49
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_partial_existing_output(self, tmp_path, make_conversation):
        records = [
            make_conversation(title="One", update_time=1700000000),
            make_conversation(title="Two", update_time=1690000000),
            make_conversation(title="Three", update_time=1680000000),
        ]
        out = tmp_path / "out"
        out.mkdir()
        (out / "2023.07.22_Two.json").write_text(json.dumps(records[1]), encoding="utf-8")
        source = _write_export(tmp_path / "c.json", records)

        result = await ConversationDumper().dump(source, out)

        assert result.processed == 2
        assert result.skipped_duplicates == 1
        assert len(_names(out)) == 3

    @pytest.mark.asyncio
    async def test_non_object_records_counted_as_errors(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [make_conversation(), "junk", 42])
        result = await ConversationDumper().dump(source, tmp_path / "out")
        assert result.processed == 1
        assert result.errors == 2
        assert result.total == 3

    @pytest.mark.asyncio
    async def test_empty_array(self, tmp_path):
        source = _write_export(tmp_path / "c.json", [])
        result = await ConversationDumper().dump(source, tmp_path / "out")
        assert result.total == 0
        assert (tmp_path / "out").is_dir()

    @pytest.mark.asyncio
    async def test_create_subdirs(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [make_conversation()])
        result = await ConversationDumper(create_subdirs=True).dump(source, tmp_path / "out")
        assert result.written[0].parent == tmp_path / "out" / "conversations"

    @pytest.mark.asyncio
    async def test_overwrite_replaces_previous_run(self, tmp_path, make_conversation):
        out = tmp_path / "out"
        out.mkdir()
        stale = out / "2023.11.14_Notes.json"
        stale.write_text(json.dumps(make_conversation(title="Notes", node_ids=("old",))), encoding="utf-8")
        source = _write_export(tmp_path / "c.json", [make_conversation(title="Notes", node_ids=("new",))])

        result = await ConversationDumper(overwrite=True).dump(source, out)

        assert result.written == [stale]
        assert "new" in json.loads(stale.read_text(encoding="utf-8"))["mapping"]

    @pytest.mark.asyncio
    async def test_overwrite_keeps_files_from_same_run(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [
            make_conversation(title="Notes", node_ids=("a",)),
            make_conversation(title="Notes", node_ids=("b",)),
        ])
        out = tmp_path / "out"
        result = await ConversationDumper(overwrite=True).dump(source, out)
        assert result.processed == 2
        assert _names(out) == ["2023.11.14_Notes.json", "2023.11.14_Notes_1.json"]

    @pytest.mark.asyncio
    async def test_source_removed_when_not_preserved(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [make_conversation()])
        await ConversationDumper(preserve_original=False).dump(source, tmp_path / "out")
        assert not source.exists()

    @pytest.mark.asyncio
    async def test_source_kept_when_nothing_written(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [make_conversation()])
        out = tmp_path / "out"
        await ConversationDumper().dump(source, out)
        await ConversationDumper(preserve_original=False).dump(source, out)
        assert source.exists()

    @pytest.mark.asyncio
    async def test_helper_function(self, tmp_path, make_conversation):
        source = _write_export(tmp_path / "c.json", [make_conversation()])
        result = await dump_conversations(source, tmp_path / "out")
        assert result.processed == 1


class TestFormatErrors:
    """Test rejection of unusable conversations files."""

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(FormatError):
            await ConversationDumper().dump(tmp_path / "absent.json", tmp_path / "out")

    @pytest.mark.asyncio
    async def test_invalid_json(self, tmp_path):
        source = tmp_path / "c.json"
        source.write_text("{broken", encoding="utf-8")
        with pytest.raises(FormatError):
            await ConversationDumper().dump(source, tmp_path / "out")

    @pytest.mark.asyncio
    async def test_top_level_object(self, tmp_path):
        source = tmp_path / "c.json"
        source.write_text('{"title": "x"}', encoding="utf-8")
        with pytest.raises(FormatError) as exc_info:
            await ConversationDumper().dump(source, tmp_path / "out")
        assert exc_info.value.context["path"] == str(source)
        assert not (tmp_path / "out").exists()
