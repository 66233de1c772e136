"""Tests for HTML clean-up and HTML-to-Markdown conversion."""

from datetime import datetime

import pytest
import yaml

from jamstack_sync.transformers.filters import iso_datetime, to_yaml
from jamstack_sync.transformers.markdown import (
    html_to_markdown,
    replace_image_urls,
    strip_block_comments,
    trim_words,
)


class TestHtmlToMarkdown:
    """Tests for html_to_markdown."""

    @pytest.mark.parametrize(
        "html, expected",
        [
            ("<h1>Title</h1>", "# Title"),
            ("<h3>Sub</h3>", "### Sub"),
            ("<p>A <em>b</em> <strong>c</strong></p>", "A *b* **c**"),
            ('<p><a href="https://x.org">link</a></p>', "[link](https://x.org)"),
            ('<img src="/a.png" alt="Alt">', "![Alt](/a.png)"),
            ("<p>Use <code>pip</code> here</p>", "Use `pip` here"),
            ("<p>one<br>two</p>", "one\ntwo"),
            ("<p>caf&eacute; &amp; more</p>", "café & more"),
        ],
    )
    def test_inline_and_headings(self, html, expected):
        assert html_to_markdown(html) == expected

    def test_unordered_and_ordered_lists(self):
        html = "<ul><li>one</li><li>two</li></ul><ol><li>first</li><li>second</li></ol>"

        assert html_to_markdown(html) == "- one\n- two\n\n1. first\n2. second"

    def test_nested_list(self):
        html = "<ul><li>parent<ul><li>child</li></ul></li></ul>"

        assert html_to_markdown(html) == "- parent\n  - child"

    def test_blockquote(self):
        html = "<blockquote><p>Quoted</p><p>Twice</p></blockquote>"

        assert html_to_markdown(html) == "> Quoted\n>\n> Twice"

    def test_preformatted_code(self):
        html = "<pre><code>x = 1\ny = 2</code></pre>"

        assert html_to_markdown(html) == "```\nx = 1\ny = 2\n```"

    def test_scripts_dropped(self):
        assert html_to_markdown("<p>Hi</p><script>alert(1)</script>") == "Hi"

    def test_collapses_blank_lines(self):
        html = "<p>a</p>\n\n\n\n<div></div>\n\n\n<p>b</p>"

        assert html_to_markdown(html) == "a\n\nb"

    def test_plain_text(self):
        assert html_to_markdown("just text") == "just text"

    def test_empty(self):
        assert html_to_markdown("   ") == ""


class TestBodyHelpers:
    """Tests for block comment removal, URL remapping and trimming."""

    def test_strip_block_comments_multiline(self):
        html = '<!-- wp:image {"id":5,\n"size":"large"} --><img src="a"><!-- /wp:image -->'

        assert strip_block_comments(html) == '<img src="a">'

    def test_other_comments_kept(self):
        assert strip_block_comments("<!-- note -->") == "<!-- note -->"

    def test_replace_image_urls_all_forms(self):
        old, new = "https://example.org/a.jpg", "/images/1/a.webp"
        html = (
            f'<img src="{old}"><img src=\'{old}\'>![x]({old})'
            f'<img srcset="{old} 300w, https://example.org/b.jpg 600w">'
        )

        result = replace_image_urls(html, {old: new})

        assert old not in result
        assert f'src="{new}"' in result
        assert f"src='{new}'" in result
        assert f"]({new})" in result
        assert f"{new} 300w" in result
        assert "https://example.org/b.jpg 600w" in result

    def test_root_relative_key_leaves_absolute_srcset_alone(self):
        """A root-relative key only matches whole srcset candidates."""
        html = (
            '<img srcset="https://site.test/wp-content/uploads/a.jpg 300w,'
            ' /wp-content/uploads/a.jpg 600w">'
        )

        result = replace_image_urls(html, {"/wp-content/uploads/a.jpg": "/images/1/a.webp"})

        assert "https://site.test/wp-content/uploads/a.jpg 300w" in result
        assert " /images/1/a.webp 600w" in result
        assert "https://site.test/images" not in result

    def test_trim_words(self):
        assert trim_words("a b c", limit=2) == "a b..."
        assert trim_words("a  b", limit=2) == "a b"


class TestFrontMatterFilters:
    """Tests for the Jinja2 front matter filters."""

    def test_to_yaml_keeps_key_order(self):
        text = to_yaml({"title": "T", "date": "2024-01-01", "draft": False})

        assert [line.split(":")[0] for line in text.splitlines()] == ["title", "date", "draft"]

    @pytest.mark.parametrize(
        "value",
        ["", " padded", "true", "No", "null", "~", "42", "1e3", "a: b", "#tag",
         "it's", "- item", "50%", "back\\slash", "two\nlines", "Tab\x0bChar"],
    )
    def test_to_yaml_round_trips_ambiguous_strings(self, value):
        assert yaml.safe_load(to_yaml({"value": value})) == {"value": value}

    def test_to_yaml_does_not_wrap_long_values(self):
        title = " ".join(["word"] * 60)

        assert to_yaml({"title": title}) == f"title: {title}\n"

    def test_to_yaml_writes_unicode_unescaped(self):
        assert to_yaml({"title": "Caf\u00e9"}) == "title: Caf\u00e9\n"

    def test_iso_datetime(self):
        assert iso_datetime(datetime(2024, 3, 15, 10, 0)) == "2024-03-15T10:00:00"
        assert iso_datetime(None) == ""
