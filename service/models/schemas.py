"""
Pydantic models for the uploader configuration file.

Shared data models across the application.
"""

from pathlib import Path
from typing import List, Union

from pydantic import BaseModel, ByteSize, ConfigDict, Field, field_validator


# =====================================================
# Telegram Models
# =====================================================

class TelegramConfig(BaseModel):
    """Telegram bot credentials."""
    model_config = ConfigDict(extra="forbid")

    token: str = ""


# =====================================================
# Upload Models
# =====================================================

class TagRules(BaseModel):
    """Tag derivation rules of one upload task."""
    model_config = ConfigDict(extra="forbid")

    plain: List[str] = Field(default_factory=list)
    regexp: List[str] = Field(default_factory=list)
    expr: List[str] = Field(default_factory=list)

    @field_validator("plain", "regexp", "expr", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class UploadConfig(BaseModel):
    """One watched directory and where its files go."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    directory: Path
    file_patterns: List[str] = Field(default_factory=list, alias="files")
    chat_id: Union[int, str] = Field(alias="chat")
    document: bool = False
    min_size: ByteSize = ByteSize(0)
    max_size: ByteSize = ByteSize(0)  # 0 means the Bot API upload limit
    tags: TagRules = Field(default_factory=TagRules)

    @field_validator("file_patterns", mode="before")
    @classmethod
    def _patterns_none_as_empty(cls, value):
        return [] if value is None else value

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_none_as_empty(cls, value):
        return {} if value is None else value

    @field_validator("min_size", "max_size")
    @classmethod
    def _non_negative(cls, value: ByteSize) -> ByteSize:
        if value < 0:
            raise ValueError("size must not be negative")
        return value


class UploaderConfig(BaseModel):
    """Top level of the YAML configuration file."""
    model_config = ConfigDict(extra="forbid")

    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    uploads: List[UploadConfig] = Field(default_factory=list)

    @field_validator("uploads", mode="before")
    @classmethod
    def _uploads_none_as_empty(cls, value):
        return [] if value is None else value
