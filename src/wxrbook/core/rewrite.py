"""Per-post HTML rewriting: tidy, harvest remote images, strip the parse wrapper"""

import logging
import re
from html import escape
from typing import Optional, Protocol

from bs4 import BeautifulSoup
from lxml import etree

from wxrbook.core.errors import RecoverableMarkupError
from wxrbook.core.models import RewriteResult, RewrittenAsset


logger = logging.getLogger(__name__)

BROKEN_MARKER = "#fixme"

UNSAFE_TAGS = ["script", "applet", "object", "embed", "iframe"]

# HTML5 elements with no XHTML 1.1 equivalent; rewritten as <div class="bc-TAG TAG">
HTML5_TAGS = frozenset({
    "article", "aside", "audio", "bdi", "canvas", "command", "data", "datalist",
    "details", "embed", "figcaption", "figure", "footer", "header", "hgroup",
    "keygen", "mark", "meter", "nav", "output", "progress", "rp", "rt", "ruby",
    "section", "source", "summary", "time", "track", "video", "wbr",
})

# XML 1.0 forbids these even as character references
_ILLEGAL_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_SHELL = (
    '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.1//EN" "http://www.w3.org/TR/xhtml11/DTD/xhtml11.dtd">'
    '<html><head><meta http-equiv="Content-Type" content="text/html; charset=utf-8"/></head>'
    "<body>{}</body></html>"
)


class Fetcher(Protocol):
    def fetch(self, url: str) -> RewrittenAsset: ...


def tidy(html: str) -> str:
    """Normalize post markup before it is loaded.

    Unsafe elements, event-handler attributes and javascript: URLs are
    removed, and HTML5-only elements become classed divs.
    """
    soup = BeautifulSoup(html, "html.parser")
    for bad in soup.find_all(UNSAFE_TAGS):
        bad.decompose()

    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            value = tag.attrs[attr]
            if attr.lower().startswith("on"):
                del tag.attrs[attr]
            elif isinstance(value, str) and value.strip().lower().startswith("javascript:"):
                del tag.attrs[attr]
        if tag.name in HTML5_TAGS:
            name = tag.name
            tag.name = "div"
            tag["class"] = [f"bc-{name}", name]

    return _ILLEGAL_XML_CHARS.sub("", str(soup))


class ContentRewriter:
    """Tree transform over one post's HTML; images are resolved through fetcher."""

    def __init__(self, fetcher: Fetcher, marker: str = BROKEN_MARKER):
        self.fetcher = fetcher
        self.marker = marker

    def load(self, html: str) -> tuple[etree._Element, list[RecoverableMarkupError]]:
        """Parse html inside a UTF-8 document shell; returns (root, recovered errors)."""
        parser = etree.HTMLParser(recover=True, encoding="utf-8", remove_comments=False)
        root = etree.fromstring(_SHELL.format(html).encode("utf-8"), parser)
        errors = [
            RecoverableMarkupError(e.message, e.line, e.column)
            for e in parser.error_log
        ]
        return root, errors

    def knead_images(self, root: etree._Element) -> list[RewrittenAsset]:
        """Point every <img> at its imported copy, or tag it as broken."""
        touched = []
        for img in root.iter("img"):
            src = (img.get("src") or "").strip()
            if not src:
                continue
            asset = self.fetcher.fetch(src)
            if asset.ok:
                img.set("src", asset.local_reference)
            else:
                img.set("src", f"{src}{self.marker}")
            touched.append(asset)
        return touched

    def dump(self, root: etree._Element) -> str:
        """Serialize the contents of <body> as an XHTML fragment, without the body tag itself."""
        body = root.find("body")
        if body is None:
            return ""
        parts = [escape(body.text or "", quote=False)]
        parts.extend(etree.tostring(child, encoding="unicode", method="xml") for child in body)
        return "".join(parts).strip()

    def rewrite(self, html: Optional[str], post_id: Optional[str] = None) -> RewriteResult:
        if not html or not html.strip():
            return RewriteResult(html="")

        root, errors = self.load(tidy(html))
        for err in errors:
            err.post_id = post_id
            logger.warning("markup: %s", err)
        images = self.knead_images(root)
        return RewriteResult(html=self.dump(root), images=images, errors=errors)
