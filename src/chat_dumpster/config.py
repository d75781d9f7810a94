"""Configuration schema for the dumpster pipeline."""

from pydantic import BaseModel, Field, ConfigDict, field_validator

from chat_dumpster.common import LoggingConfig, expand_path_variables

MIB = 1024 * 1024
GIB = 1024 * MIB


class LimitsConfig(BaseModel):
    """Security limits applied to an archive before extraction."""

    model_config = ConfigDict(extra='forbid')

    max_upload_size: int = Field(
        default=500 * MIB,
        gt=0,
        description="Maximum size of the archive itself in bytes"
    )
    max_extracted_size: int = Field(
        default=2 * GIB,
        gt=0,
        description="Maximum sum of uncompressed entry sizes in bytes"
    )
    max_compression_ratio: float = Field(
        default=100.0,
        gt=0,
        description="Maximum uncompressed/compressed ratio of any single entry"
    )
    max_files_in_zip: int = Field(
        default=10_000,
        gt=0,
        description="Maximum number of entries in the archive"
    )


class PathsConfig(BaseModel):
    """Where dumpsters and scratch directories live."""

    model_config = ConfigDict(extra='forbid', validate_default=True)

    dumpsters_dir: str = Field(
        default="${USER_DATA}/dumpsters",
        description="Directory holding one subdirectory per dumpster"
    )
    temp_dir: str = Field(
        default="${TEMP}/chat-dumpster",
        description="Root for per-run scratch directories"
    )

    @field_validator("*", mode="before")
    @classmethod
    def expand_variables(cls, v: str) -> str:
        """Expand ${VAR} in paths."""
        return expand_path_variables(v)


class LayoutConfig(BaseModel):
    """Layout detection settings."""

    model_config = ConfigDict(extra='forbid')

    max_depth: int = Field(
        default=4,
        ge=0,
        description="How many directory levels below the scratch root to search"
    )
    allow_partial: bool = Field(
        default=False,
        description="Accept exports with no HTML asset index or no media directory"
    )


class AssetsConfig(BaseModel):
    """Asset resolution and media organization settings."""

    model_config = ConfigDict(extra='forbid')

    search_depth: int = Field(
        default=1,
        ge=0,
        description="Subdirectory levels below the media root searched for assets"
    )
    cache_size: int = Field(
        default=1000,
        gt=0,
        description="Capacity of the per-run (directory, filename) lookup cache"
    )
    copy_unreferenced: bool = Field(
        default=True,
        description="Copy media files that no conversation points at"
    )


class DumpsterConfig(BaseModel):
    """Root configuration for chat-dumpster."""

    model_config = ConfigDict(extra='forbid')

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    assets: AssetsConfig = Field(default_factory=AssetsConfig)
