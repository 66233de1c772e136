"""Per-item processing locks.

A lock is a file, <lock_dir>/<item_id>.lock, created with O_CREAT | O_EXCL
so that only one process can hold it. A lock whose file is older than the
TTL is considered abandoned and may be taken over. Each acquire writes a
fresh token into the file, and only the holder of that token may release it.
"""

import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path

logger: logging.Logger = logging.getLogger(__name__)

LOCK_TTL = 60


class LockManager:
    """Exclusive, expiring per-item locks backed by lock files.

    Attributes:
        lock_dir: Directory holding the lock files
        ttl: Seconds after which a lock is treated as expired
    """

    def __init__(self, lock_dir: Path, ttl: int = LOCK_TTL):
        self.lock_dir = lock_dir
        self.ttl = ttl
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"LockManager('{self.lock_dir}', ttl={self.ttl})"

    def lock_path(self, item_id: int) -> Path:
        return self.lock_dir / f"{item_id}.lock"

    def acquire(self, item_id: int) -> str | None:
        """Try to take the item's lock.

        Returns:
            The holder token to pass to release(), or None if another
            holder has a live lock
        """
        path = self.lock_path(item_id)
        token = self._create(path, item_id)
        if token:
            return token

        if not self.is_expired(item_id):
            return None

        logger.warning(f"Taking over expired lock for item {item_id}")
        path.unlink(missing_ok=True)
        return self._create(path, item_id)

    def release(self, item_id: int, token: str | None = None) -> bool:
        """Remove the item's lock file if the caller still owns it.

        With a token, the lock is removed only if it was not taken over since.
        Without one, only an expired lock is removed; a live lock belongs to
        a run in progress and is left alone.

        Returns:
            True if no lock file remains for the item
        """
        path = self.lock_path(item_id)
        if token is None:
            if not self.is_expired(item_id):
                return False
        elif self.holder(item_id) != token:
            if not path.exists():
                return True
            logger.warning(
                f"Lock for item {item_id} was taken over by another worker, leaving it"
            )
            return False

        path.unlink(missing_ok=True)
        return True

    def holder(self, item_id: int) -> str | None:
        """Token written by the current lock holder, if any."""
        try:
            data = json.loads(self.lock_path(item_id).read_text())
        except (FileNotFoundError, ValueError):
            return None
        return data.get("token")

    def is_locked(self, item_id: int) -> bool:
        """Whether a live (unexpired) lock exists for the item."""
        return self.lock_path(item_id).exists() and not self.is_expired(item_id)

    def is_expired(self, item_id: int) -> bool:
        try:
            age = time.time() - self.lock_path(item_id).stat().st_mtime
        except FileNotFoundError:
            return True
        return age > self.ttl

    def _create(self, path: Path, item_id: int) -> str | None:
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return None

        token = uuid.uuid4().hex

        with os.fdopen(fd, "w") as f:
            json.dump(
                {
                    "item_id": item_id,
                    "token": token,
                    "pid": os.getpid(),
                    "acquired_at": str(datetime.now(timezone.utc)),
                },
                f,
            )
        return token
