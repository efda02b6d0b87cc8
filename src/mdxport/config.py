"""Application configuration: settings schema and mdxport.yaml loader"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "mdxport.yaml"
ENV_PREFIX = "MDXPORT_"


class Settings(BaseModel):
    style:              str   = Field(default="modern-tech", description="Built-in template style")
    template:           Optional[str] = Field(default=None, description="Path to a custom Typst template (.typ)")
    parser_config:      str   = Field(default="gfm-like", description="MarkdownIt parser preset name")
    debounce_ms:        int   = Field(default=300, ge=0, description="Watch-mode quiet window in milliseconds")
    cjk_threshold:      float = Field(default=0.15, ge=0.0, le=1.0, description="CJK ratio above which lang is zh")
    strict_frontmatter: bool  = Field(default=False, description="Reject unknown frontmatter keys")
    typst_bin:          str   = Field(default="typst", description="Typst executable used for compilation")
    font_paths:         list[str] = Field(default_factory=list, description="Extra font directories for Typst")


def _env_value(name: str, raw: str) -> Any:
    """List-valued settings are read from env as os.pathsep-separated strings."""
    if name == "font_paths":
        return [p for p in raw.split(os.pathsep) if p]
    return raw


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from mdxport.yaml, then MDXPORT_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping, got {type(data).__name__}")

    for name in Settings.model_fields:
        if val := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
            data[name] = _env_value(name, val)

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
