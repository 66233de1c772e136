"""Exceptions raised by the sync pipeline.

Remote failures keep their own types (see jamstack_sync.clients.exceptions)
and propagate through the pipeline unchanged.
"""


class SyncError(Exception):
    """Base exception for sync pipeline errors."""

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


class ItemNotFound(SyncError):
    """Raised when the content source has no item with the given id."""

    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found")


class NotPublishable(SyncError):
    """Raised when an item is not in the published state."""

    def __init__(self, item_id: int, status: str):
        self.item_id = item_id
        self.status = status
        super().__init__(f"Item {item_id} is {status}; only published items are synced")


class ConfigurationError(SyncError):
    """Raised when required settings are missing or unreadable."""

    pass


class PathUnresolvable(SyncError):
    """Raised when an item's repository path can be neither read nor derived."""

    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(
            f"Item {item_id} not found and no cached file path available"
        )


class CodecUnsupported(SyncError):
    """Raised when no encoder backend can produce the requested image format."""

    def __init__(self, image_format: str):
        self.image_format = image_format
        super().__init__(f"No encoder supports {image_format}")


class PayloadTooLarge(SyncError):
    """Raised (only when enforcement is enabled) for commits over the soft limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"Commit payload is {size / 1048576:.2f} MiB, over the "
            f"{limit / 1048576:.2f} MiB limit"
        )
