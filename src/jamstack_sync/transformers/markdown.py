"""HTML body clean-up and HTML-to-Markdown conversion."""

import re

from lxml import etree
from lxml import html as lxml_html

BLOCK_COMMENT_OPEN = re.compile(r"<!-- wp:.*?-->", re.DOTALL)
BLOCK_COMMENT_CLOSE = re.compile(r"<!-- /wp:.*?-->", re.DOTALL)
EXCESS_NEWLINES = re.compile(r"\n{3,}")
WHITESPACE = re.compile(r"\s+")

DROPPED_TAGS = {"script", "style", "noscript", "iframe"}
CONTAINER_TAGS = {
    "div", "section", "article", "figure", "header", "footer", "main",
    "aside", "table", "thead", "tbody", "tr",
}
HEADING_LEVELS = {f"h{n}": n for n in range(1, 7)}


def strip_block_comments(html: str) -> str:
    """Remove editor block comments, keeping the markup between them.

    Examples:
        >>> strip_block_comments('<!-- wp:paragraph --><p>Hi</p><!-- /wp:paragraph -->')
        '<p>Hi</p>'
    """
    html = BLOCK_COMMENT_OPEN.sub("", html)
    return BLOCK_COMMENT_CLOSE.sub("", html)


def replace_image_urls(html: str, mapping: dict[str, str]) -> str:
    """Point image references at their new site-relative paths.

    Rewrites src attributes (either quote style), Markdown image targets and
    srcset entries.
    """
    for original, new_path in mapping.items():
        html = html.replace(f'src="{original}"', f'src="{new_path}"')
        html = html.replace(f"src='{original}'", f"src='{new_path}'")
        html = html.replace(f"]({original})", f"]({new_path})")
        # srcset candidates start the attribute or follow a comma or whitespace
        html = re.sub(
            r"(?<![^\s,\"'])" + re.escape(original) + r"(\s+\d+w)",
            lambda m, path=new_path: path + m.group(1),
            html,
        )
    return html


def strip_tags(html: str) -> str:
    """Return the text content of an HTML fragment with whitespace collapsed."""
    if not html or not html.strip():
        return ""
    fragment = _parse(html)
    if fragment is None:
        return ""
    for dropped in fragment.xpath("|".join(f".//{tag}" for tag in DROPPED_TAGS)):
        dropped.drop_tree()
    return WHITESPACE.sub(" ", " ".join(fragment.itertext())).strip()


def trim_words(text: str, limit: int = 30, more: str = "...") -> str:
    """Keep the first `limit` words of text, appending `more` if anything was cut."""
    words = text.split()
    if len(words) <= limit:
        return " ".join(words)
    return " ".join(words[:limit]) + more


def html_to_markdown(html: str) -> str:
    """Convert an HTML fragment to Markdown.

    Handles headings (ATX style), paragraphs, emphasis, links, images, lists,
    blockquotes, inline and preformatted code, rules and hard line breaks.
    Unknown elements contribute their content; scripts and styles are dropped.

    Args:
        html: HTML fragment

    Returns:
        Markdown text with at most one blank line between blocks
    """
    if not html or not html.strip():
        return ""

    fragment = _parse(html)
    if fragment is None:
        return ""

    markdown = _children(fragment)
    lines = [line.rstrip() for line in markdown.split("\n")]
    markdown = EXCESS_NEWLINES.sub("\n\n", "\n".join(lines))
    return markdown.strip()


def _parse(html: str):
    try:
        return lxml_html.fragment_fromstring(html, create_parent="div")
    except etree.ParserError:
        return None


def _text(text: str | None) -> str:
    if not text:
        return ""
    if not text.strip():
        return "\n" if "\n" in text else " "
    return WHITESPACE.sub(" ", text)


def _children(element) -> str:
    parts = [_text(element.text)]
    for child in element:
        parts.append(_convert(child))
        tail = _text(child.tail)
        if child.tag == "br":
            tail = tail.lstrip(" ")
        parts.append(tail)
    return "".join(parts)


def _block(content: str) -> str:
    return f"\n\n{content}\n\n"


def _convert(element) -> str:
    # Comments and processing instructions
    if not isinstance(element.tag, str):
        return ""

    tag = element.tag.lower()

    if tag in DROPPED_TAGS:
        return ""

    if tag in HEADING_LEVELS:
        content = _children(element).strip()
        return _block(f"{'#' * HEADING_LEVELS[tag]} {content}") if content else ""

    if tag == "p":
        return _block(_children(element).strip())

    if tag == "br":
        return "\n"

    if tag == "hr":
        return _block("---")

    if tag in ("strong", "b"):
        content = _children(element).strip()
        return f"**{content}**" if content else ""

    if tag in ("em", "i"):
        content = _children(element).strip()
        return f"*{content}*" if content else ""

    if tag == "code":
        return f"`{element.text_content()}`"

    if tag == "pre":
        code = element.text_content().strip("\n")
        return _block(f"```\n{code}\n```")

    if tag == "a":
        content = _children(element).strip()
        href = element.get("href")
        if not href:
            return content
        return f"[{content}]({href})"

    if tag == "img":
        src = element.get("src")
        if not src:
            return ""
        return f"![{element.get('alt', '')}]({src})"

    if tag in ("ul", "ol"):
        return _block(_list(element, ordered=tag == "ol"))

    if tag == "blockquote":
        content = EXCESS_NEWLINES.sub("\n\n", _children(element).strip())
        quoted = [f"> {line}" if line.strip() else ">" for line in content.split("\n")]
        return _block("\n".join(quoted))

    if tag in CONTAINER_TAGS or tag == "figcaption":
        return _block(_children(element))

    if tag in ("td", "th"):
        return _children(element).strip() + " "

    return _children(element)


def _list(element, ordered: bool) -> str:
    lines = []
    number = 0
    for child in element:
        if not isinstance(child.tag, str) or child.tag.lower() != "li":
            continue
        number += 1
        marker = f"{number}. " if ordered else "- "
        content = _children(child).strip()
        content = re.sub(r"\n\s*\n", "\n", content)
        item_lines = content.split("\n")
        lines.append(marker + item_lines[0])
        indent = " " * len(marker)
        lines.extend(indent + line if line.strip() else "" for line in item_lines[1:])
    return "\n".join(lines)
