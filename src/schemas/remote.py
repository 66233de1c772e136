"""Records returned by the remote repository client."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class FileRecord(BaseModel):
    """A single file in the remote repository.

    Attributes:
        path: Repository-relative path
        sha: Blob SHA, the revision token required to update or delete
        content: Decoded file content
        size: Size in bytes as reported by the API
    """

    path: str
    sha: str
    content: bytes = b""
    size: int = 0


class DirectoryEntry(BaseModel):
    """An entry of a remote directory listing."""

    name: str
    path: str
    sha: str
    type: Literal["file", "dir", "symlink", "submodule"] = "file"
    size: int = 0

    model_config = {"extra": "ignore"}


class CommitResult(BaseModel):
    """Result of an atomic multi-file commit.

    Attributes:
        commit_sha: SHA of the new commit
        tree_sha: SHA of the new root tree
        parent_sha: Branch tip the commit was built on
        branch: Branch that now points at commit_sha
        files: Paths written by the commit
        attempts: Number of snapshot/commit attempts needed
    """

    commit_sha: str
    tree_sha: str
    parent_sha: str
    branch: str
    files: list[str] = []
    attempts: int = 1


class ConnectionDiagnosis(BaseModel):
    """Outcome of a connection test.

    ok is True only when the repository is reachable with push permission.
    code is a stable identifier for the failure kind (e.g. "invalid_token",
    "rate_limited"); message is human readable.
    """

    ok: bool
    code: str
    message: str
    reset_at: datetime | None = None
