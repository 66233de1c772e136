"""Base class for format transformers.

A format transformer turns a ContentItem into the document a particular
static site generator expects, and decides where that document lives in
the repository. Transformers are pure: they never touch the network or the
filesystem outside their templates.
"""

from abc import ABC, abstractmethod

from schemas.content_item import ContentItem
from schemas.outcomes import RenderedDocument


class FormatTransformer(ABC):
    """Abstract base class for item-to-document transformers."""

    @abstractmethod
    def render(
        self,
        item: ContentItem,
        image_mapping: dict[str, str] | None = None,
        featured_image_path: str | None = None,
    ) -> RenderedDocument:
        """Render an item as a repository document.

        Args:
            item: Content item to render
            image_mapping: Original image URL -> site-relative path
            featured_image_path: Site-relative path of the processed featured image

        Returns:
            RenderedDocument with the document text and its repository path
        """
        pass

    @abstractmethod
    def get_file_path(self, item: ContentItem) -> str:
        """Return the repository path the item's document is stored at."""
        pass
