"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from wxrbook.core.models import ImportConfig


CONFIG_FILE = "config.yaml"
ENV_PREFIX = "WXRBOOK_"

_LIST_FIELDS = {
    "supported_post_types", "custom_post_types", "taxonomies",
    "meta_keys", "multi_meta_keys", "image_extensions",
}


class Settings(BaseModel):
    app_name:         str = "wxrbook"
    db_url:           str = "sqlite:///wxrbook.db"
    staging_dir:      str = Field(default=".wxrbook/staging", description="Where the staged import selection is kept")
    media_dir:        str = Field(default="media",            description="Directory imported images are copied into")
    media_url:        str = Field(default="/media",           description="Public URL prefix for imported images")
    default_status:   str = Field(default="draft", pattern="^(draft|publish|private|pending)$")
    download_timeout: float = Field(default=30.0, gt=0, description="Seconds before an image download is abandoned")
    log_level:        str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR)$")
    log_file:         str | None = Field(default=None, description="Optional DEBUG log file")

    supported_post_types: list[str] = ["post", "page", "front-matter", "chapter", "part", "back-matter", "metadata"]
    custom_post_types:    list[str] = []
    taxonomies:           list[str] = ["front-matter-type", "chapter-type", "back-matter-type"]
    meta_keys:            list[str] = [
        "pb_section_author", "pb_section_license", "pb_short_title",
        "pb_subtitle", "pb_show_title", "pb_export",
    ]
    multi_meta_keys:      list[str] = ["pb_contributing_authors", "pb_keywords_tags", "pb_bisac_subject"]
    image_extensions:     list[str] = ["jpg", "jpeg", "gif", "png"]

    @field_validator(*_LIST_FIELDS, mode="before")
    @classmethod
    def _split_csv(cls, v: Any) -> Any:
        """Accept comma-separated strings (env vars) for list fields."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    def import_config(self) -> ImportConfig:
        """Return the allow-lists the importer is constructed with."""
        return ImportConfig(
            supported_post_types=tuple(self.supported_post_types),
            custom_post_types=tuple(self.custom_post_types),
            taxonomies=tuple(self.taxonomies),
            meta_keys=tuple(self.meta_keys),
            multi_meta_keys=tuple(self.multi_meta_keys),
            image_extensions=tuple(e.lower().lstrip(".") for e in self.image_extensions),
        )


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then WXRBOOK_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping, got {type(data).__name__}")

    for name in Settings.model_fields:
        if val := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
