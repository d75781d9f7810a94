"""Tests for the pipeline configuration schema."""

import tempfile
from pathlib import Path

import pytest
import toml
from pydantic import ValidationError

from chat_dumpster.config import DumpsterConfig, LimitsConfig, PathsConfig, AssetsConfig

DEFAULTS_TOML = Path(__file__).parent.parent / "config" / "defaults.toml"


class TestLimitsConfig:
    """Test archive limit defaults and bounds."""

    def test_defaults(self):
        limits = LimitsConfig()
        assert limits.max_upload_size == 500 * 1024 * 1024
        assert limits.max_extracted_size == 2 * 1024 * 1024 * 1024
        assert limits.max_compression_ratio == 100
        assert limits.max_files_in_zip == 10_000

    def test_rejects_non_positive(self):
        with pytest.raises(ValidationError):
            LimitsConfig(max_files_in_zip=0)
        with pytest.raises(ValidationError):
            LimitsConfig(max_compression_ratio=-1)

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            LimitsConfig(max_upload=1)


class TestPathsConfig:
    """Test path variable expansion."""

    def test_temp_variable_expanded_in_defaults(self):
        paths = PathsConfig()
        assert "${" not in paths.temp_dir
        assert paths.temp_dir.startswith(tempfile.gettempdir())
        assert "${" not in paths.dumpsters_dir

    def test_explicit_values_expanded(self):
        paths = PathsConfig(dumpsters_dir="${TEMP}/mine")
        assert paths.dumpsters_dir == f"{tempfile.gettempdir()}/mine"

    def test_plain_paths_unchanged(self, tmp_path):
        paths = PathsConfig(dumpsters_dir=str(tmp_path))
        assert paths.dumpsters_dir == str(tmp_path)


class TestDumpsterConfig:
    """Test the root config model."""

    def test_sections_present(self):
        config = DumpsterConfig()
        assert config.layout.max_depth == 4
        assert config.layout.allow_partial is False
        assert config.assets == AssetsConfig()
        assert config.logging.level == "INFO"

    def test_nested_dict_input(self):
        config = DumpsterConfig(**{"limits": {"max_files_in_zip": 3}, "assets": {"cache_size": 5}})
        assert config.limits.max_files_in_zip == 3
        assert config.assets.cache_size == 5

    def test_shipped_defaults_match_model(self):
        """Test that config/defaults.toml validates and mirrors the model defaults."""
        data = toml.load(DEFAULTS_TOML)
        from_file = DumpsterConfig(**data)
        assert from_file.limits == LimitsConfig()
        assert from_file.layout == DumpsterConfig().layout
        assert from_file.assets == AssetsConfig()
