"""Import orchestration: stage a WXR file for review, then commit it into the stores"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

import requests
from bs4 import BeautifulSoup
from sqlmodel import Session

from wxrbook.config import Settings
from wxrbook.core.assets import AssetCache, AssetFetcher
from wxrbook.core.errors import SelectionError
from wxrbook.core.models import (
    CHAPTER, METADATA, PART,
    ImportConfig, ImportSelection, ImportSummary, MetaEntry, ParsedDocument, ParsedPost, ParsedTerm,
)
from wxrbook.core.parse import parse_wxr
from wxrbook.core.rewrite import BROKEN_MARKER, ContentRewriter
from wxrbook.core.structure import is_own_format, nested_sort
from wxrbook.crud.media import FileAssetStore
from wxrbook.crud.repo import AssetStore, ContentStore, TermStore
from wxrbook.crud.sql_repo import SQLContentStore, SQLTermStore


logger = logging.getLogger(__name__)

SELECTION_FILE = "selection.json"

# Required pages of an exported webbook; never imported.
PLACEHOLDER_CONTENT = ("<!-- Here be dragons.-->", "<!-- Here be dragons. -->")

_SERIALIZED_RE = re.compile(r'^(?:s:\d+:"(?P<s>.*)";|i:(?P<i>-?\d+);|d:(?P<d>[^;]+);|b:(?P<b>[01]);|N;)$', re.DOTALL)


@dataclass(frozen=True)
class ParentState:
    """Fold accumulator for chapter placement: the part the next chapter belongs to."""
    current_part: Optional[int] = None

    def parent_for(self, post_type: str) -> Optional[int]:
        return self.current_part if post_type == CHAPTER else None

    def advance(self, post_type: str, record_id: int) -> "ParentState":
        return ParentState(record_id) if post_type == PART else self


def maybe_unserialize(value: str) -> str:
    """Decode a PHP-serialized scalar ('s:3:"foo";' -> 'foo'); other values are returned unchanged."""
    m = _SERIALIZED_RE.match(value.strip()) if value else None
    if not m:
        return value
    if m.group("s") is not None:
        return m.group("s")
    if m.group("i") is not None:
        return m.group("i")
    if m.group("d") is not None:
        return m.group("d")
    if m.group("b") is not None:
        return "1" if m.group("b") == "1" else ""
    return ""


def first_meta_value(key: str, meta: Sequence[MetaEntry]) -> str:
    """Value of the first entry with key, or '' if absent."""
    return next((m.value for m in meta if m.key == key), "")


def strip_tags(text: str) -> str:
    return BeautifulSoup(text or "", "html.parser").get_text().strip()


def ordered_posts(doc: ParsedDocument, config: ImportConfig) -> list[ParsedPost]:
    """Book order for own-format exports, file order otherwise."""
    if is_own_format(doc):
        logger.debug("export looks book-structured; applying nested sort")
        return nested_sort(doc.posts, config.custom_post_types)
    return list(doc.posts)


def is_importable(post: ParsedPost, config: ImportConfig) -> bool:
    return post.type in config.supported_post_types and post.content not in PLACEHOLDER_CONTENT


def stage_file(
    source_file: Path | str,
    config: ImportConfig,
    mime_type: str = "text/xml",
    default_status: str = "draft",
    ) -> ImportSelection:
    """Parse source_file and list every importable post for review; all start out selected."""
    doc = parse_wxr(source_file)
    selection = ImportSelection(
        source_file=str(Path(source_file).resolve()),
        mime_type=mime_type,
        default_status=default_status,
    )
    for post in ordered_posts(doc, config):
        if not is_importable(post, config):
            continue
        selection.chapters[post.id] = post.title
        selection.post_types[post.id] = post.type
    selection.selected_ids = set(selection.chapters)
    logger.info("staged %d of %d posts from %s", len(selection.chapters), len(doc.posts), source_file)
    return selection


class Importer:
    """Stage and commit a WXR book export through the collaborator stores."""

    def __init__(
        self,
        content: ContentStore,
        terms: TermStore,
        assets: AssetStore,
        config: ImportConfig | None = None,
        *,
        timeout: float = 30.0,
        http: requests.Session | None = None,
    ) -> None:
        self.content = content
        self.terms = terms
        self.assets = assets
        self.config = config or ImportConfig()
        self.timeout = timeout
        self.http = http

    def stage(self, source_file: Path | str, mime_type: str = "text/xml", default_status: str = "draft") -> ImportSelection:
        return stage_file(source_file, self.config, mime_type, default_status)

    # --- commit ---

    def import_terms(self, terms: Iterable[ParsedTerm]) -> int:
        """Create terms the term store does not know yet; returns how many were created."""
        created = 0
        for t in terms:
            if self.terms.term_exists(t.name, t.taxonomy, t.slug):
                continue
            self.terms.create_term(t.name, t.taxonomy, t.description, t.slug)
            created += 1
        return created

    def import_post_meta(self, record_id: int, post_type: str, meta: Sequence[MetaEntry]) -> None:
        prefix = self.config.meta_prefix
        if post_type == METADATA:
            self.content.clear_meta_by_prefix(record_id, prefix)
            for entry in meta:
                if entry.key.startswith(prefix):
                    multivalued = entry.key in self.config.multi_meta_keys
                    self.content.set_record_meta(record_id, entry.key, entry.value, multivalued)
            return

        for key in self.config.meta_keys:
            value = maybe_unserialize(first_meta_value(key, meta))
            if value:
                self.content.set_record_meta(record_id, key, value, key in self.config.multi_meta_keys)

    def _new_fetcher(self) -> AssetFetcher:
        return AssetFetcher(
            self.assets, AssetCache(),
            session=self.http, extensions=self.config.image_extensions, timeout=self.timeout,
        )

    def _import_post(
        self,
        post: ParsedPost,
        post_type: str,
        selection: ImportSelection,
        rewriter: ContentRewriter,
        state: ParentState,
        summary: ImportSummary,
        ) -> ParentState:
        result = rewriter.rewrite(post.content, post.id)
        summary.markup_errors.extend(result.errors)
        for asset in result.images:
            if not asset.ok and asset not in summary.broken_images:
                summary.broken_images.append(asset)

        if post_type == METADATA:
            record_id = self.content.get_or_create_metadata_record()
        else:
            is_part = post_type == PART
            record_id = self.content.create_record(
                post_type,
                strip_tags(post.title),
                "" if is_part else result.html,
                state.parent_for(post_type),
                "publish" if is_part else selection.default_status,
            )
            state = state.advance(post_type, record_id)

        for term in post.terms:
            if term.domain in self.config.taxonomies:
                self.content.associate_terms(record_id, [term.slug], term.domain)

        if post.meta:
            self.import_post_meta(record_id, post_type, post.meta)

        self.content.reorder_record(record_id)
        summary.count(post_type)
        logger.info("imported %s %s as record %s", post_type, post.id, record_id)
        return state

    def commit(self, selection: ImportSelection) -> ImportSummary:
        """Re-parse the staged file and import every selected post in book order.

        Document errors surface before anything is written; image and markup
        problems are collected on the returned summary.
        """
        doc = parse_wxr(selection.source_file)
        posts = ordered_posts(doc, self.config)

        created = self.import_terms(doc.terms)
        logger.debug("created %d new terms", created)

        summary = ImportSummary()
        fetcher = self._new_fetcher()
        rewriter = ContentRewriter(fetcher)
        state = ParentState(self.content.get_default_parent())
        try:
            for post in posts:
                if post.type not in self.config.supported_post_types or not selection.is_selected(post.id):
                    continue
                state = self._import_post(
                    post, selection.effective_type(post.id), selection, rewriter, state, summary,
                )
        finally:
            fetcher.close()

        logger.info(summary.message())
        if summary.broken_images:
            logger.warning("%d image(s) could not be imported and were marked %s",
                           len(summary.broken_images), BROKEN_MARKER)
        if summary.markup_errors:
            logger.warning("%d recoverable markup error(s) while loading post content", len(summary.markup_errors))
        return summary


# --- staging directory helpers ---

def build_importer(settings: Settings, session: Session, http: requests.Session | None = None) -> Importer:
    """Importer writing through SQL stores bound to session."""
    return Importer(
        SQLContentStore(session),
        SQLTermStore(session),
        FileAssetStore(settings.media_dir, settings.media_url),
        settings.import_config(),
        timeout=settings.download_timeout,
        http=http,
    )


def save_selection(selection: ImportSelection, staging_dir: Path) -> Path:
    staging_dir.mkdir(parents=True, exist_ok=True)
    out_file = staging_dir / SELECTION_FILE
    out_file.write_text(selection.model_dump_json(indent=2))
    return out_file


def load_selection(staging_dir: Path) -> ImportSelection | None:
    f = staging_dir / SELECTION_FILE
    if not f.exists():
        return None
    return ImportSelection.model_validate_json(f.read_text())


def clear_selection(staging_dir: Path) -> None:
    (staging_dir / SELECTION_FILE).unlink(missing_ok=True)


def run_stage(
    source_file: str,
    settings: Settings,
    staging_dir: Path,
    skip: Iterable[str] = (),
    overrides: dict[str, str] | None = None,
    mime_type: str = "text/xml",
    ) -> tuple[ImportSelection, Path]:
    """Parse source_file, apply operator choices, and write the selection to staging_dir."""
    config = settings.import_config()
    selection = stage_file(source_file, config, mime_type, settings.default_status)

    unknown = [i for i in list(skip) + list(overrides or {}) if i not in selection.chapters]
    if unknown:
        raise SelectionError(f"Not a staged post id: {', '.join(unknown)}")
    for post_type in (overrides or {}).values():
        if post_type not in config.supported_post_types:
            raise SelectionError(f"Unsupported post type: {post_type}")

    selection.selected_ids -= set(skip)
    selection.type_overrides.update(overrides or {})
    return selection, save_selection(selection, staging_dir)


def run_commit(
    engine,
    settings: Settings,
    staging_dir: Path,
    http: requests.Session | None = None,
    ) -> ImportSummary:
    """Commit the staged selection in one transaction, then discard it.

    Raises SelectionError when nothing is staged or the staged file is gone.
    """
    selection = load_selection(staging_dir)
    if selection is None:
        raise SelectionError("Nothing staged")
    if not Path(selection.source_file).exists():
        raise SelectionError(f"Staged file no longer exists: {selection.source_file}")

    with Session(engine) as session:
        summary = build_importer(settings, session, http).commit(selection)
        session.commit()
    clear_selection(staging_dir)
    return summary
