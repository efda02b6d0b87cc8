"""Data models passed between the frontmatter, convert and template stages"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FrontMatter(BaseModel):
    """Schema of the YAML block; unknown keys are tolerated unless strict mode is on."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    title:   Optional[str] = None
    author:  Optional[str] = None
    authors: Optional[list[str]] = None
    lang:    Optional[str] = None
    toc:     Optional[bool] = None

    @field_validator("title", "author", "lang", mode="before")
    @classmethod
    def _date_to_str(cls, value: Any) -> Any:
        # YAML reads `2024-05-01` as a date
        return value.isoformat() if isinstance(value, date) else value

    @field_validator("authors", mode="before")
    @classmethod
    def _dates_to_str(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [v.isoformat() if isinstance(v, date) else v for v in value]
        return value

    @property
    def unknown_keys(self) -> list[str]:
        return sorted(self.model_extra or {})


class MetadataOverrides(BaseModel):
    """Caller-supplied values that beat the frontmatter; blank strings count as absent."""
    title:   Optional[str] = None
    authors: Optional[list[str]] = None
    lang:    Optional[str] = None
    toc:     Optional[bool] = None


class ResolvedMetadata(BaseModel):
    """Document metadata after merging overrides, frontmatter, detection and defaults."""
    model_config = ConfigDict(frozen=True)

    title:   Optional[str] = None
    authors: list[str] = Field(default_factory=list)
    lang:    str = "en"
    toc:     bool = False


class ConvertedDocument(BaseModel):
    """Typst body markup plus the metadata the template needs."""
    model_config = ConfigDict(frozen=True)

    body:     str
    metadata: ResolvedMetadata
