"""Unit tests for core/rewrite.py"""

from wxrbook.core.errors import RecoverableMarkupError
from wxrbook.core.models import AssetStatus
from wxrbook.core.rewrite import BROKEN_MARKER, ContentRewriter, tidy


def test_tidy_removes_scripts_and_handlers():
    """tidy drops unsafe elements, on* attributes and javascript: URLs."""
    html = tidy('<p onclick="x()">Hi<script>alert(1)</script></p><a href="javascript:evil()">l</a>')
    assert "script" not in html
    assert "onclick" not in html
    assert "javascript:" not in html
    assert "Hi" in html


def test_tidy_rewrites_html5_tags():
    """HTML5-only elements become classed divs."""
    html = tidy("<section><p>Body</p></section>")
    assert html == '<div class="bc-section section"><p>Body</p></div>'


def test_tidy_strips_illegal_xml_characters():
    """Characters XML 1.0 forbids are removed."""
    assert tidy("<p>a\x0bb</p>") == "<p>ab</p>"


def test_rewrite_drops_pasted_body_tag(static_fetcher):
    """A body tag carried in the content does not leak into the output."""
    result = ContentRewriter(static_fetcher).rewrite('<body class="MsoNormal" lang="en"><p>Word</p></body>')
    assert result.html == "<p>Word</p>"


def test_rewrite_keeps_leading_text(static_fetcher):
    """Text before the first element is kept and escaped."""
    result = ContentRewriter(static_fetcher).rewrite("Fish &amp; chips <b>today</b> only")
    assert result.html == "Fish &amp; chips <b>today</b> only"


def test_rewrite_plain_paragraph(static_fetcher):
    """Content without images passes through without a wrapper."""
    result = ContentRewriter(static_fetcher).rewrite("<p>Hello <em>world</em></p>")
    assert result.html == "<p>Hello <em>world</em></p>"
    assert result.images == []
    assert static_fetcher.calls == []


def test_rewrite_empty_content(static_fetcher):
    """Blank content yields an empty string."""
    assert ContentRewriter(static_fetcher).rewrite("   ").html == ""
    assert ContentRewriter(static_fetcher).rewrite(None).html == ""


def test_rewrite_replaces_image_src(static_fetcher):
    """An imported image points at its local reference."""
    result = ContentRewriter(static_fetcher).rewrite('<p><img src="https://example.com/a.png" alt="a"/></p>')
    assert 'src="/media/a.png"' in result.html
    assert result.images[0].status is AssetStatus.ok


def test_rewrite_marks_broken_image(static_fetcher):
    """An image that could not be imported keeps its URL plus the fixme marker."""
    result = ContentRewriter(static_fetcher).rewrite('<img src="https://example.com/notes.txt">')
    assert f'src="https://example.com/notes.txt{BROKEN_MARKER}"' in result.html
    assert not result.images[0].ok


def test_rewrite_skips_img_without_src(static_fetcher):
    """<img> without a src is left alone and not fetched."""
    result = ContentRewriter(static_fetcher).rewrite('<p><img alt="none"/></p>')
    assert static_fetcher.calls == []
    assert result.images == []


def test_rewrite_output_is_xhtml(static_fetcher):
    """Void elements are self-closed in the output."""
    html = ContentRewriter(static_fetcher).rewrite("<p>a<br>b</p>").html
    assert "<br/>" in html


def test_rewrite_recovers_from_broken_markup(static_fetcher):
    """Unbalanced markup is repaired instead of raising."""
    result = ContentRewriter(static_fetcher).rewrite("<p>unclosed <b>bold</p></div><custom-tag>x</custom-tag>")
    assert "unclosed" in result.html
    assert "<b>bold</b>" in result.html


def test_rewrite_tags_markup_errors_with_post_id(static_fetcher, monkeypatch):
    """Errors reported while loading are stamped with the post id."""
    rewriter = ContentRewriter(static_fetcher)
    original_load = rewriter.load

    def load_with_error(html):
        root, _ = original_load(html)
        return root, [RecoverableMarkupError("Tag custom invalid", 1, 7)]

    monkeypatch.setattr(rewriter, "load", load_with_error)
    result = rewriter.rewrite("<p>x</p>", post_id="42")
    assert [e.post_id for e in result.errors] == ["42"]
    assert str(result.errors[0]) == "post 42, line 1, column 7: Tag custom invalid"
