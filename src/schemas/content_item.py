"""Content item schemas.

Content items are owned by the content source (a CMS export, a database,
etc.). The sync core only ever reads them.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, field_validator


class ItemStatus(str, Enum):
    """Lifecycle state of a content item in its source system."""

    DRAFT = "draft"
    PUBLISHED = "published"
    OTHER = "other"


class TaxonomyTerm(BaseModel):
    """A (taxonomy, term) pair attached to an item, e.g. ("post_tag", "python")."""

    taxonomy: str
    name: str

    model_config = {"frozen": True}


class ContentItem(BaseModel):
    """A post or page exposed by the content source.

    Attributes:
        id: Stable unique identifier
        title: Item title
        body: Raw HTML body
        excerpt: Optional hand-written summary
        status: Source lifecycle status
        created_at: Publish date, used for the destination path
        modified_at: Last modification time
        author_id: Source identifier of the author
        author_name: Display name of the author, if the source resolved it
        taxonomy_terms: Tags, categories and other terms
        thumbnail_ref: Opaque reference to the featured image attachment
        slug: URL-safe name used in path generation
        content_type: Source content type (post, page, ...)
    """

    id: int
    title: str
    body: str = ""
    excerpt: str | None = None
    status: ItemStatus = ItemStatus.DRAFT
    created_at: datetime
    modified_at: datetime
    author_id: int | None = None
    author_name: str | None = None
    taxonomy_terms: set[TaxonomyTerm] = set()
    thumbnail_ref: str | None = None
    slug: str
    content_type: str = "post"

    model_config = {"extra": "allow"}

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value):
        if isinstance(value, ItemStatus):
            return value
        if value == "publish":
            return ItemStatus.PUBLISHED
        try:
            return ItemStatus(value)
        except ValueError:
            return ItemStatus.OTHER

    @property
    def is_published(self) -> bool:
        return self.status is ItemStatus.PUBLISHED

    def terms(self, taxonomy: str) -> list[str]:
        """Return the sorted term names for a taxonomy."""
        return sorted(t.name for t in self.taxonomy_terms if t.taxonomy == taxonomy)
