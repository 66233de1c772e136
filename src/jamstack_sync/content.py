"""Content sources the sync core reads items from.

The core never writes to a content source. JsonContentSource reads a
directory export laid out as:

    content/
    ├── items/
    │   ├── 42.json          # ContentItem
    │   └── ...
    └── attachments.json     # {"<thumbnail_ref>": "<url>", ...}
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from schemas.content_item import ContentItem

logger = logging.getLogger(__name__)


class ContentSource(ABC):
    """Read-only accessor for content items."""

    @abstractmethod
    def get_item(self, item_id: int) -> ContentItem | None:
        """Return the item, or None if it does not exist."""
        pass

    @abstractmethod
    def list_items(self, content_types: list[str] | None = None) -> list[ContentItem]:
        """Return all items, optionally restricted to some content types."""
        pass

    @abstractmethod
    def get_attachment_url(self, ref: str) -> str | None:
        """Resolve a media reference (e.g. a thumbnail id) to a URL."""
        pass


class JsonContentSource(ContentSource):
    """Content source backed by a directory of JSON item records."""

    def __init__(self, root: Path):
        self.root = root
        self.items_dir = root / "items"
        self._attachments: dict[str, str] | None = None

    def _item_path(self, item_id: int) -> Path:
        return self.items_dir / f"{item_id}.json"

    def _load(self, path: Path) -> ContentItem | None:
        try:
            return ContentItem.model_validate(json.loads(path.read_text()))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.error(f"Invalid content record {path}: {e}")
            return None

    def get_item(self, item_id: int) -> ContentItem | None:
        path = self._item_path(item_id)
        if not path.exists():
            return None
        return self._load(path)

    def list_items(self, content_types: list[str] | None = None) -> list[ContentItem]:
        items: list[ContentItem] = []
        if not self.items_dir.exists():
            return items

        for path in sorted(self.items_dir.glob("*.json")):
            item = self._load(path)
            if item is None:
                continue
            if content_types is not None and item.content_type not in content_types:
                continue
            items.append(item)
        return items

    def get_attachment_url(self, ref: str) -> str | None:
        if self._attachments is None:
            path = self.root / "attachments.json"
            self._attachments = json.loads(path.read_text()) if path.exists() else {}
        return self._attachments.get(str(ref))
