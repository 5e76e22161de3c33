"""Root test configuration: session-level cleanup of runtime artifacts and WXR file builders"""

import shutil
from pathlib import Path

import pytest


_PROJECT_ROOT = Path(__file__).parent.parent

_CLEANUP_FILES = ["wxrbook.db", "test.db"]
_CLEANUP_DIRS = [".wxrbook", "media"]

WXR_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
    xmlns:excerpt="http://wordpress.org/export/1.2/excerpt/"
    xmlns:content="http://purl.org/rss/1.0/modules/content/"
    xmlns:dc="http://purl.org/dc/elements/1.1/"
    xmlns:wp="http://wordpress.org/export/1.2/">
<channel>
    <title>Test Book</title>
    <wp:wxr_version>1.2</wp:wxr_version>
{terms}
{items}
</channel>
</rss>
"""


def wxr_term(name, taxonomy, slug="", description=""):
    return (
        "    <wp:term>"
        f"<wp:term_taxonomy>{taxonomy}</wp:term_taxonomy>"
        f"<wp:term_slug>{slug}</wp:term_slug>"
        f"<wp:term_name><![CDATA[{name}]]></wp:term_name>"
        f"<wp:term_description><![CDATA[{description}]]></wp:term_description>"
        "</wp:term>"
    )


def wxr_item(post_id, post_type, title="", content="", parent="0", order=0, status="publish",
             meta=(), categories=()):
    """One <item>; meta is [(key, value)], categories is [(domain, nicename, label)]."""
    postmeta = "".join(
        f"<wp:postmeta><wp:meta_key>{k}</wp:meta_key>"
        f"<wp:meta_value><![CDATA[{v}]]></wp:meta_value></wp:postmeta>"
        for k, v in meta
    )
    cats = "".join(
        f'<category domain="{d}" nicename="{n}"><![CDATA[{label}]]></category>'
        for d, n, label in categories
    )
    return (
        "    <item>"
        f"<title>{title}</title>"
        f"<content:encoded><![CDATA[{content}]]></content:encoded>"
        f"<wp:post_id>{post_id}</wp:post_id>"
        f"<wp:post_name>post-{post_id}</wp:post_name>"
        f"<wp:status>{status}</wp:status>"
        f"<wp:post_parent>{parent}</wp:post_parent>"
        f"<wp:menu_order>{order}</wp:menu_order>"
        f"<wp:post_type>{post_type}</wp:post_type>"
        f"{cats}{postmeta}"
        "</item>"
    )


def wxr_document(items=(), terms=()):
    return WXR_TEMPLATE.format(terms="\n".join(terms), items="\n".join(items))


BOOK_ITEMS = [
    wxr_item("1", "metadata", "Book Info", "", meta=[
        ("pb_title", "A Test Book"),
        ("pb_contributing_authors", "Ann"),
        ("pb_contributing_authors", "Bob"),
        ("_edit_lock", "123:1"),
    ]),
    wxr_item("6", "back-matter", "Appendix", "<p>Appendix</p>", order=6),
    wxr_item("5", "chapter", "Second", "<p>Two</p>", parent="3", order=5),
    wxr_item("2", "front-matter", "Preface", "<p>Preface</p>", order=1,
             categories=[("front-matter-type", "preface", "Preface")]),
    wxr_item("3", "part", "Part One", "<p>Part</p>", order=3),
    wxr_item("4", "chapter", "First", "<p>One</p>", parent="3", order=4,
             meta=[("pb_short_title", 's:5:"Short";'), ("pb_subtitle", "")],
             categories=[("chapter-type", "standard", "Standard")]),
    wxr_item("7", "front-matter", "Dedication", "<p>Dedication</p>", order=2),
]

BOOK_TERMS = [
    wxr_term("Preface", "front-matter-type", "preface"),
    wxr_term("Standard", "chapter-type", "standard"),
    wxr_term("Appendix", "back-matter-type", "appendix"),
]


@pytest.fixture(scope="session", autouse=True)
def cleanup_artifacts():
    """Remove DB files, staging and media directories created during the test session."""
    yield
    for name in _CLEANUP_FILES:
        p = _PROJECT_ROOT / name
        if p.exists():
            p.unlink()
    for name in _CLEANUP_DIRS:
        p = _PROJECT_ROOT / name
        if p.exists():
            shutil.rmtree(p)


@pytest.fixture(name="write_wxr")
def write_wxr_fixture(tmp_path):
    """Return a writer that saves a WXR document under tmp_path and returns its path."""
    def _write(items=(), terms=(), name="export.xml"):
        path = tmp_path / name
        path.write_text(wxr_document(items, terms), encoding="utf-8")
        return path
    return _write


@pytest.fixture(name="book_wxr")
def book_wxr_fixture(write_wxr):
    """A book export: metadata, two front matter, a part with two chapters, back matter."""
    return write_wxr(BOOK_ITEMS, BOOK_TERMS, name="book.xml")


@pytest.fixture(name="make_item")
def make_item_fixture():
    return wxr_item


@pytest.fixture(name="make_term")
def make_term_fixture():
    return wxr_term
