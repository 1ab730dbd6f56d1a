"""Configuration objects for a preference store."""

from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

FILE_EXT = "json"
DEFAULT_EMBEDDING_FILE_PATH = "settings.json"

# Returned for keys that are missing when no default was given.
UNDEFINED = "undefined"
# Stored in place of None, and returned for JSON nulls found in a file.
NULL = "null"


class PreferenceConfig(BaseModel):
    """Immutable container for the options a preference store is built with.

    Options may be given by field name or by their camelCase alias, so both
    ``PreferenceConfig(file_name="Settings")`` and
    ``PreferenceConfig(fileName="Settings")`` work.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    preference_file_dir: Optional[str] = Field(
        default=None,
        alias="preferenceFileDir",
        description="Base directory for default and override paths",
    )
    file_name: Optional[str] = Field(
        default=None, alias="fileName", description="Default file base name"
    )
    file_ext: str = Field(
        default=FILE_EXT, alias="fileExt", description="Default file extension"
    )
    preference_file_name: Optional[str] = Field(
        default=None,
        alias="preferenceFileName",
        description="Deprecated full default file name, overrides file_name/file_ext",
    )
    use_embedding_storage: bool = Field(
        default=False,
        alias="useEmbeddingStorage",
        description="Derive the default path from the host's data directory",
    )
    embedding_file_path: Optional[str] = Field(
        default=None,
        alias="embeddingFilePath",
        description="Sub-path under the host application's data directory",
    )
    app_name: Optional[str] = Field(
        default=None,
        alias="appName",
        description="Application name used to look up the per-user data directory",
    )

    @field_validator(
        "preference_file_dir",
        "preference_file_name",
        "embedding_file_path",
        mode="before",
    )
    @classmethod
    def _coerce_path_like(cls, value: Any) -> Any:
        if isinstance(value, os.PathLike):
            return os.fspath(value)
        return value

    @field_validator("file_ext")
    @classmethod
    def _strip_leading_dot(cls, value: str) -> str:
        return value.lstrip(".") or FILE_EXT
