"""Schema definitions for jamstack-sync."""

from .content_item import ContentItem, ItemStatus, TaxonomyTerm
from .outcomes import (
    BulkSummary,
    DeletionOutcome,
    MediaAsset,
    MediaResult,
    RenderedDocument,
    RetrySummary,
    SyncOutcome,
)
from .remote import CommitResult, ConnectionDiagnosis, DirectoryEntry, FileRecord
from .settings import SyncSettings
from .sync_state import SyncJob, SyncState, SyncStatus

__all__ = [
    "BulkSummary",
    "CommitResult",
    "ConnectionDiagnosis",
    "ContentItem",
    "DeletionOutcome",
    "DirectoryEntry",
    "FileRecord",
    "ItemStatus",
    "MediaAsset",
    "MediaResult",
    "RenderedDocument",
    "RetrySummary",
    "SyncOutcome",
    "SyncJob",
    "SyncSettings",
    "SyncState",
    "SyncStatus",
    "TaxonomyTerm",
]
