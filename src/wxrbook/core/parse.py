"""WXR (WordPress eXtended RSS) parsing into a ParsedDocument"""

import logging
from pathlib import Path

from lxml import etree

from wxrbook.core.errors import MalformedDocument
from wxrbook.core.models import MetaEntry, ParsedDocument, ParsedPost, ParsedTerm, PostTerm
from wxrbook.core.utils.slug import slugify


logger = logging.getLogger(__name__)

WP_NS_PREFIX = "http://wordpress.org/export/"
CONTENT_NS   = "http://purl.org/rss/1.0/modules/content/"

# wp:category / wp:tag blocks are folded into the same term list as wp:term
_LEGACY_TERMS = {
    "category": ("category", "category_nicename", "cat_name", "category_description"),
    "tag":      ("post_tag", "tag_slug", "tag_name", "tag_description"),
}


def _make_parser() -> etree.XMLParser:
    """Strict parser: no DTD entity expansion, no network, CDATA folded into text."""
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)


def _local(el) -> str:
    return etree.QName(el).localname if isinstance(el.tag, str) else ""


def _is_wp(el) -> bool:
    """True for elements in any WXR version namespace (1.0, 1.1, 1.2, ...)."""
    if not isinstance(el.tag, str):
        return False
    ns = etree.QName(el).namespace or ""
    return ns.startswith(WP_NS_PREFIX) and "/excerpt/" not in ns


def _wp_fields(el) -> dict[str, str]:
    """Map local name -> text for the wp:* leaf children of el; first occurrence wins."""
    fields: dict[str, str] = {}
    for child in el:
        if _is_wp(child) and len(child) == 0:
            fields.setdefault(_local(child), child.text or "")
    return fields


def _to_int(value: str) -> int:
    try:
        return int(value.strip())
    except (AttributeError, ValueError):
        return 0


def _parse_meta(item) -> tuple[MetaEntry, ...]:
    meta = []
    for child in item:
        if _is_wp(child) and _local(child) == "postmeta":
            fields = _wp_fields(child)
            key = fields.get("meta_key", "")
            if key:
                meta.append(MetaEntry(key=key, value=fields.get("meta_value", "")))
    return tuple(meta)


def _parse_item_terms(item) -> tuple[PostTerm, ...]:
    terms = []
    for cat in item.findall("category"):
        domain = cat.get("domain")
        if not domain:
            continue
        slug = cat.get("nicename") or slugify(cat.text or "")
        if slug:
            terms.append(PostTerm(slug=slug, domain=domain))
    return tuple(terms)


def _parse_item(item) -> ParsedPost | None:
    """Convert one <item> into a ParsedPost; items without a post id are skipped."""
    fields = _wp_fields(item)
    post_id = fields.get("post_id", "").strip()
    if not post_id:
        logger.debug("skipping <item> without wp:post_id")
        return None

    content = ""
    for child in item:
        if isinstance(child.tag, str) and etree.QName(child).namespace == CONTENT_NS \
                and _local(child) == "encoded":
            content = child.text or ""
            break

    parent = fields.get("post_parent", "").strip()
    title = item.findtext("title") or ""
    return ParsedPost(
        id=post_id,
        type=fields.get("post_type", "post").strip() or "post",
        title=title,
        content=content,
        parent_id=parent if parent and parent != "0" else None,
        order=_to_int(fields.get("menu_order", "0")),
        status=fields.get("status", "").strip(),
        slug=fields.get("post_name", "").strip(),
        meta=_parse_meta(item),
        terms=_parse_item_terms(item),
    )


def _parse_terms(channel) -> tuple[ParsedTerm, ...]:
    """Collect channel-level terms, keeping the first term per (taxonomy, slug)."""
    terms: list[ParsedTerm] = []
    seen: set[tuple[str, str]] = set()

    for child in channel:
        if not _is_wp(child):
            continue
        name = _local(child)
        fields = _wp_fields(child)
        if name == "term":
            term = ParsedTerm(
                name=fields.get("term_name", ""),
                taxonomy=fields.get("term_taxonomy", ""),
                description=fields.get("term_description", ""),
                slug=fields.get("term_slug", ""),
            )
        elif name in _LEGACY_TERMS:
            taxonomy, slug_key, name_key, desc_key = _LEGACY_TERMS[name]
            term = ParsedTerm(
                name=fields.get(name_key, ""),
                taxonomy=taxonomy,
                description=fields.get(desc_key, ""),
                slug=fields.get(slug_key, ""),
            )
        else:
            continue

        if not term.name or not term.taxonomy:
            continue
        if not term.slug:
            term = ParsedTerm(term.name, term.taxonomy, term.description, slugify(term.name))
        key = (term.taxonomy, term.slug)
        if key in seen:
            logger.debug("dropping duplicate term %s/%s", *key)
            continue
        seen.add(key)
        terms.append(term)
    return tuple(terms)


def parse_wxr(path: Path | str) -> ParsedDocument:
    """Parse a WXR export file, preserving item order.

    Raises MalformedDocument if the file is unreadable, not well-formed XML,
    or has no RSS <channel>.
    """
    path = Path(path)
    try:
        root = etree.parse(str(path), _make_parser()).getroot()
    except etree.XMLSyntaxError as e:
        raise MalformedDocument(f"{path} is not well-formed XML: {e}") from e
    except OSError as e:
        raise MalformedDocument(f"Cannot read {path}: {e}") from e

    channel = root if _local(root) == "channel" else root.find("channel")
    if channel is None:
        raise MalformedDocument(f"{path} has no RSS <channel> element")

    posts = tuple(p for p in (_parse_item(item) for item in channel.findall("item")) if p)
    terms = _parse_terms(channel)
    logger.info("parsed %s: %d posts, %d terms", path.name, len(posts), len(terms))
    return ParsedDocument(posts=posts, terms=terms)
