"""Hugo transformer for rendering content items as Markdown documents.

Produces Hugo posts: YAML front matter followed by a Markdown body, stored
at content/posts/<YYYY-MM-DD>-<slug>.md.
"""

import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from schemas.content_item import ContentItem
from schemas.outcomes import RenderedDocument

from .filters import FILTERS, iso_datetime
from .markdown import (
    html_to_markdown,
    replace_image_urls,
    strip_block_comments,
    strip_tags,
    trim_words,
)
from .transformer import FormatTransformer

logger = logging.getLogger(__name__)

# Resolve the project root (4 levels up from this file):
#   hugo_transformer.py → transformers/ → jamstack_sync/ → src/ → project root
# If this file is ever moved, the chain of .parent calls must be updated.
PACKAGE_ROOT = Path(__file__).parent.parent.parent.parent
TEMPLATES_DIR = PACKAGE_ROOT / "resources" / "templates"

POSTS_DIR = "content/posts"
DESCRIPTION_WORDS = 30


class HugoTransformer(FormatTransformer):
    """Render content items as Hugo Markdown posts.

    Front matter fields, in order: title, date, lastmod, draft, description,
    tags, categories, author, image. Empty lists and missing author or image
    are omitted.

    Attributes:
        template_name: Name of the Jinja2 template file
    """

    def __init__(
        self,
        template_name: str = "post.md.j2",
        templates_dir: Path | None = None,
    ):
        """Initialize the Hugo transformer.

        Args:
            template_name: Name of the Jinja2 template file
            templates_dir: Directory containing templates (default: resources/templates)
        """
        self.template_name = template_name
        self.templates_dir = templates_dir or TEMPLATES_DIR

        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
        )
        for name, func in FILTERS.items():
            self._env.filters[name] = func

    def render(
        self,
        item: ContentItem,
        image_mapping: dict[str, str] | None = None,
        featured_image_path: str | None = None,
    ) -> RenderedDocument:
        front_matter = self.get_front_matter(item, featured_image_path)
        body = self.convert_content(item.body, image_mapping or {})

        template = self._env.get_template(self.template_name)
        text = template.render(front_matter=front_matter, body=body).rstrip("\n") + "\n"

        path = self.get_file_path(item)
        logger.debug(f"Rendered item {item.id} to {path} ({len(text)} chars)")
        return RenderedDocument(text=text, path=path)

    def get_file_path(self, item: ContentItem) -> str:
        """Repository path derived from the creation date and slug.

        Examples:
            An item created 2024-03-15 with slug "hello-world" maps to
            content/posts/2024-03-15-hello-world.md
        """
        slug = item.slug or str(item.id)
        return f"{POSTS_DIR}/{item.created_at:%Y-%m-%d}-{slug}.md"

    def get_front_matter(
        self,
        item: ContentItem,
        featured_image_path: str | None = None,
    ) -> dict:
        """Build the front matter for an item, in output order.

        Empty term lists and a missing author or image are left out.
        """
        front_matter = {
            "title": item.title,
            "date": iso_datetime(item.created_at),
            "lastmod": iso_datetime(item.modified_at),
            "draft": not item.is_published,
            "description": self.get_description(item),
        }
        optional = {
            "tags": item.terms("post_tag"),
            "categories": item.terms("category"),
            "author": item.author_name,
            "image": featured_image_path,
        }
        front_matter.update((key, value) for key, value in optional.items() if value)
        return front_matter

    def get_description(self, item: ContentItem) -> str:
        """The item's excerpt, or the first words of its body as plain text."""
        if item.excerpt:
            return item.excerpt
        text = strip_tags(strip_block_comments(item.body))
        return trim_words(text, DESCRIPTION_WORDS)

    def convert_content(self, body: str, image_mapping: dict[str, str]) -> str:
        """Convert an HTML body to Markdown with images pointing at their new paths."""
        if image_mapping:
            body = replace_image_urls(body, image_mapping)
        body = strip_block_comments(body)
        return html_to_markdown(body)
