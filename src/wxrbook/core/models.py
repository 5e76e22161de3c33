"""Intermediate data models for the parse, stage and commit pipeline"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from wxrbook.core.errors import RecoverableMarkupError


FRONT_MATTER = "front-matter"
CHAPTER      = "chapter"
PART         = "part"
BACK_MATTER  = "back-matter"
METADATA     = "metadata"

STRUCTURAL_TYPES = frozenset({PART, CHAPTER, FRONT_MATTER, BACK_MATTER, METADATA})
COUNTED_TYPES    = (FRONT_MATTER, CHAPTER, PART, BACK_MATTER)


@dataclass(frozen=True)
class MetaEntry:
    key:   str
    value: str


@dataclass(frozen=True)
class PostTerm:
    """A term reference carried by an item (<category domain=... nicename=...>)."""
    slug:   str
    domain: str


@dataclass(frozen=True)
class ParsedPost:
    """One <item> of the export; immutable after parse."""
    id:        str
    type:      str
    title:     str = ""
    content:   str = ""
    parent_id: Optional[str] = None     # None when the item has no parent (wp:post_parent 0)
    order:     int = 0                  # wp:menu_order
    status:    str = ""
    slug:      str = ""
    meta:      tuple[MetaEntry, ...] = ()
    terms:     tuple[PostTerm, ...] = ()


@dataclass(frozen=True)
class ParsedTerm:
    name:        str
    taxonomy:    str
    description: str = ""
    slug:        str = ""


@dataclass(frozen=True)
class ParsedDocument:
    """Internal parse result; owned by the run that produced it, not persisted."""
    posts: tuple[ParsedPost, ...]
    terms: tuple[ParsedTerm, ...] = ()


@dataclass(frozen=True)
class ImportConfig:
    """Extension points the importer is constructed with."""
    supported_post_types: tuple[str, ...] = ("post", "page", FRONT_MATTER, CHAPTER, PART, BACK_MATTER, METADATA)
    custom_post_types:    tuple[str, ...] = ()
    taxonomies:           tuple[str, ...] = ("front-matter-type", "chapter-type", "back-matter-type")
    meta_keys:            tuple[str, ...] = (
        "pb_section_author", "pb_section_license", "pb_short_title",
        "pb_subtitle", "pb_show_title", "pb_export",
    )
    multi_meta_keys:      tuple[str, ...] = ("pb_contributing_authors", "pb_keywords_tags", "pb_bisac_subject")
    image_extensions:     tuple[str, ...] = ("jpg", "jpeg", "gif", "png")
    meta_prefix:          str = "pb_"


class ImportSelection(BaseModel):
    """Public staging contract: written by stage, read once by commit."""
    source_file:    str
    mime_type:      str = "text/xml"
    type_of:        str = "wxr"
    chapters:       dict[str, str] = {}     # post id -> title, in staged order
    post_types:     dict[str, str] = {}     # post id -> source type
    selected_ids:   set[str] = set()
    type_overrides: dict[str, str] = {}
    default_status: str = "draft"
    allow_parts:    bool = True

    def is_selected(self, post_id: str) -> bool:
        return post_id in self.chapters and post_id in self.selected_ids

    def effective_type(self, post_id: str) -> str:
        """Operator override if given, else the type recorded at stage time."""
        return self.type_overrides.get(post_id) or self.post_types[post_id]


class AssetStatus(str, Enum):
    ok               = "ok"
    unsupported_type = "unsupported-type"
    download_failed  = "download-failed"
    corrupt          = "corrupt"


@dataclass(frozen=True)
class RewrittenAsset:
    source_url:      str
    status:          AssetStatus
    local_reference: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is AssetStatus.ok


@dataclass
class RewriteResult:
    html:   str
    images: list[RewrittenAsset] = field(default_factory=list)
    errors: list[RecoverableMarkupError] = field(default_factory=list)


@dataclass
class ImportSummary:
    """Per-type running totals plus the warnings collected during a commit."""
    totals:        dict[str, int] = field(default_factory=lambda: {t: 0 for t in COUNTED_TYPES})
    metadata:      int = 0
    broken_images: list[RewrittenAsset] = field(default_factory=list)
    markup_errors: list[RecoverableMarkupError] = field(default_factory=list)

    def count(self, post_type: str) -> None:
        if post_type == METADATA:
            self.metadata += 1
        else:
            self.totals[post_type] = self.totals.get(post_type, 0) + 1

    def message(self) -> str:
        t = self.totals
        part = "part" if t[PART] == 1 else "parts"
        chapter = "chapter" if t[CHAPTER] == 1 else "chapters"
        return (
            f"Imported {t[FRONT_MATTER]} front matter, {t[PART]} {part}, "
            f"{t[CHAPTER]} {chapter}, and {t[BACK_MATTER]} back matter."
        )
