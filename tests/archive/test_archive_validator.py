"""Tests for pre-extraction archive validation."""

import zipfile

import pytest

from chat_dumpster.archive import ArchiveValidator, ArchiveReport
from chat_dumpster.config import LimitsConfig
from chat_dumpster.errors import ValidationError


class TestArchiveValidator:
    """Test each limit and the order they are checked in."""

    def test_accepts_normal_archive(self, build_zip):
        data = build_zip({"conversations.json": "[]", "chat.html": "<html></html>"})
        report = ArchiveValidator().validate(data)
        assert isinstance(report, ArchiveReport)
        assert report.file_count == 2
        assert report.declared_size == len(data)
        assert report.extracted_size == len("[]") + len("<html></html>")

    def test_accepts_path_input(self, build_zip, tmp_path):
        path = tmp_path / "export.zip"
        path.write_bytes(build_zip({"a.txt": "a"}))
        assert ArchiveValidator().validate(path).file_count == 1

    def test_accepts_empty_archive(self, build_zip):
        report = ArchiveValidator().validate(build_zip({}))
        assert report.file_count == 0

    def test_rejects_upload_size(self, build_zip):
        data = build_zip({"a.txt": "x" * 100})
        with pytest.raises(ValidationError) as exc_info:
            ArchiveValidator(LimitsConfig(max_upload_size=50)).validate(data)
        assert exc_info.value.context["limit"] == "max_upload_size"
        assert "max_upload_size" in exc_info.value.message

    def test_upload_size_checked_before_signature(self):
        with pytest.raises(ValidationError) as exc_info:
            ArchiveValidator(LimitsConfig(max_upload_size=5)).validate(b"this is not a zip")
        assert exc_info.value.context["limit"] == "max_upload_size"

    def test_rejects_missing_signature(self):
        with pytest.raises(ValidationError) as exc_info:
            ArchiveValidator().validate(b"this is not a zip file at all")
        assert exc_info.value.context["limit"] == "zip_signature"

    def test_rejects_truncated_archive(self, build_zip):
        data = build_zip({"a.txt": "hello"})
        with pytest.raises(ValidationError) as exc_info:
            ArchiveValidator().validate(data[:30])
        assert exc_info.value.context["limit"] == "zip_structure"

    def test_rejects_extracted_size(self, build_zip):
        data = build_zip({"a.txt": "x" * 80, "b.txt": "y" * 80})
        with pytest.raises(ValidationError) as exc_info:
            ArchiveValidator(LimitsConfig(max_extracted_size=100)).validate(data)
        assert exc_info.value.context["limit"] == "max_extracted_size"
        assert exc_info.value.context["actual"] == 160

    def test_rejects_compression_ratio(self, build_zip):
        data = build_zip({"bomb.bin": b"\x00" * 200_000}, compression=zipfile.ZIP_DEFLATED)
        with pytest.raises(ValidationError) as exc_info:
            ArchiveValidator().validate(data)
        assert exc_info.value.context["limit"] == "max_compression_ratio"
        assert exc_info.value.context["entry"] == "bomb.bin"

    def test_ratio_within_limit(self, build_zip):
        data = build_zip({"bomb.bin": b"\x00" * 200_000}, compression=zipfile.ZIP_DEFLATED)
        report = ArchiveValidator(LimitsConfig(max_compression_ratio=10_000)).validate(data)
        assert report.max_ratio > 100

    def test_rejects_file_count(self, build_zip):
        data = build_zip({f"f{i}.txt": "x" for i in range(4)})
        with pytest.raises(ValidationError) as exc_info:
            ArchiveValidator(LimitsConfig(max_files_in_zip=3)).validate(data)
        assert exc_info.value.context["limit"] == "max_files_in_zip"

    def test_file_count_at_limit_accepted(self, build_zip):
        data = build_zip({f"f{i}.txt": "x" for i in range(3)})
        assert ArchiveValidator(LimitsConfig(max_files_in_zip=3)).validate(data).file_count == 3

    @pytest.mark.parametrize("name", ["../evil.txt", "/abs/evil.txt", "a/../../evil.txt"])
    def test_rejects_unsafe_member_names(self, build_zip, name):
        data = build_zip({"ok.txt": "fine", name: "evil"})
        with pytest.raises(ValidationError) as exc_info:
            ArchiveValidator().validate(data)
        assert exc_info.value.context["limit"] == "member_path"

    def test_nothing_written(self, build_zip, tmp_path, monkeypatch):
        """Test that a rejected archive leaves the working directory untouched."""
        monkeypatch.chdir(tmp_path)
        data = build_zip({f"f{i}.txt": "x" for i in range(5)})
        with pytest.raises(ValidationError):
            ArchiveValidator(LimitsConfig(max_files_in_zip=2)).validate(data)
        assert list(tmp_path.iterdir()) == []


class TestCompressionRatio:
    """Test per-entry ratio computation."""

    def test_empty_entry_has_zero_ratio(self):
        info = zipfile.ZipInfo("empty.txt")
        info.file_size = 0
        info.compress_size = 0
        assert ArchiveValidator._compression_ratio(info) == 0.0

    def test_non_empty_entry_with_zero_compressed_size_is_infinite(self):
        info = zipfile.ZipInfo("liar.bin")
        info.file_size = 10
        info.compress_size = 0
        assert ArchiveValidator._compression_ratio(info) == float("inf")
