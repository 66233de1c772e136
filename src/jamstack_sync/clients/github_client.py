"""GitHub REST API client for the static-site repository."""

import base64
import logging
from typing import Any
from urllib.parse import quote

from jamstack_sync import __version__
from jamstack_sync.exceptions import ConfigurationError
from schemas.remote import CommitResult, ConnectionDiagnosis, DirectoryEntry, FileRecord
from schemas.settings import SyncSettings

from .client import Client
from .exceptions import (
    APIError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TransportError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_TIMEOUT = 10.0
METADATA_TIMEOUT = 15.0
WRITE_TIMEOUT = 30.0

FILE_MODE = "100644"


def _encode(content: bytes | str) -> str:
    if isinstance(content, str):
        content = content.encode("utf-8")
    return base64.b64encode(content).decode("ascii")


class GitHubClient(Client):
    """Client for a GitHub-shaped repository contents and Git data API.

    Single-file operations go through the contents API. Multi-file updates
    go through the Git data API (blobs, trees, commits, refs) so that every
    file of a sync lands in one commit or none does.

    Example:
        settings = SyncSettings(repository="owner/site", token="...")
        with GitHubClient(settings) as client:
            result = client.create_atomic_commit(
                {"content/posts/2024-01-15-hello.md": b"..."},
                "Update: Hello",
            )
    """

    def __init__(self, settings: SyncSettings, config: dict | None = None):
        """Initialize the client.

        Args:
            settings: Sync settings providing repository, branch, token and URLs
            config: Optional base client overrides (timeout, retry_attempts, ...)
        """
        config = dict(config or {})
        config.setdefault("base_url", settings.api_base_url)
        config.setdefault("timeout", WRITE_TIMEOUT)

        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"jamstack-sync/{__version__}",
        }
        if settings.token_value:
            headers["Authorization"] = f"Bearer {settings.token_value}"
        headers.update(config.get("headers", {}))
        config["headers"] = headers

        super().__init__(config)
        self.settings = settings

    @property
    def repository(self) -> str | None:
        return self.settings.repository

    @property
    def branch(self) -> str:
        return self.settings.branch

    def commit_url(self, commit_sha: str) -> str:
        """Build the web URL of a commit in the target repository."""
        base = self.settings.web_base_url.rstrip("/")
        return f"{base}/{self.repository}/commit/{commit_sha}"

    def _require_config(self) -> str:
        if not self.settings.token_value or not self.repository:
            raise ConfigurationError("GitHub token and repository must be configured")
        return self.repository

    def _repo_path(self, suffix: str) -> str:
        repo = self._require_config()
        return f"/repos/{repo}/{suffix}"

    def _contents_path(self, path: str) -> str:
        return self._repo_path(f"contents/{quote(path.lstrip('/'), safe='/')}")

    def fetch(self) -> dict[str, Any]:
        """Fetch the repository metadata (GET /repos/{repo})."""
        repo = self._require_config()
        response = self.get(f"/repos/{repo}", timeout=METADATA_TIMEOUT)
        return response.json()

    def get_file(self, path: str) -> FileRecord | None:
        """Fetch a file and its revision token.

        Args:
            path: Repository-relative file path

        Returns:
            FileRecord with decoded content, or None if the file does not exist

        Raises:
            ValidationError: If the path is a directory
            APIError: For other API failures
            TransportError: If the network connection fails
        """
        try:
            response = self.get(
                self._contents_path(path),
                params={"ref": self.branch},
                timeout=METADATA_TIMEOUT,
            )
        except NotFoundError:
            logger.debug(f"File not found in {self.repository}@{self.branch}: {path}")
            return None

        data = response.json()
        if not isinstance(data, dict) or "sha" not in data:
            raise ValidationError(f"Expected a file at {path}, got a directory listing")

        content = data.get("content") or ""
        return FileRecord(
            path=data.get("path", path),
            sha=data["sha"],
            content=base64.b64decode(content) if content else b"",
            size=data.get("size", 0),
        )

    def create_or_update_file(
        self,
        path: str,
        content: bytes | str,
        message: str,
        sha: str | None = None,
    ) -> dict[str, Any]:
        """Create a file, or update it when its current sha is supplied.

        Args:
            path: Repository-relative file path
            content: File content
            message: Commit message
            sha: Current blob sha; required to update an existing file

        Returns:
            The API response (commit and content metadata)

        Raises:
            ConflictError: If sha is stale
            APIError: For other API failures
        """
        body: dict[str, Any] = {
            "message": message,
            "content": _encode(content),
            "branch": self.branch,
        }
        if sha is not None:
            body["sha"] = sha

        response = self.put(self._contents_path(path), json=body, timeout=WRITE_TIMEOUT)
        logger.info(f"{'Updated' if sha else 'Created'} {path} on {self.branch}")
        return response.json()

    def delete_file(self, path: str, message: str) -> bool:
        """Delete a file, treating an already-absent file as success.

        Args:
            path: Repository-relative file path
            message: Commit message

        Returns:
            True once the file is gone
        """
        record = self.get_file(path)
        if record is None:
            logger.info(f"Nothing to delete, {path} does not exist")
            return True

        body = {"message": message, "sha": record.sha, "branch": self.branch}
        try:
            self.delete(self._contents_path(path), json=body, timeout=METADATA_TIMEOUT)
        except NotFoundError:
            logger.info(f"{path} was deleted concurrently")
            return True

        logger.info(f"Deleted {path} (sha {record.sha[:7]})")
        return True

    def list_directory(self, path: str) -> list[DirectoryEntry]:
        """List a directory, returning [] when it does not exist."""
        try:
            response = self.get(
                self._contents_path(path),
                params={"ref": self.branch},
                timeout=METADATA_TIMEOUT,
            )
        except NotFoundError:
            return []

        data = response.json()
        if not isinstance(data, list):
            raise ValidationError(f"Expected a directory at {path}, got a single file")
        return [DirectoryEntry.model_validate(entry) for entry in data]

    def get_branch_sha(self) -> str:
        """Return the commit sha the configured branch points at."""
        response = self.get(
            self._repo_path(f"git/ref/heads/{self.branch}"),
            timeout=METADATA_TIMEOUT,
        )
        data = response.json()
        try:
            return data["object"]["sha"]
        except (KeyError, TypeError) as e:
            raise ValidationError(f"Invalid ref response for branch {self.branch}") from e

    def get_rate_limit(self) -> dict[str, Any]:
        """Return the API rate limit status (GET /rate_limit)."""
        self._require_config()
        response = self.get("/rate_limit", timeout=RATE_LIMIT_TIMEOUT)
        return response.json()

    def create_atomic_commit(
        self, files: dict[str, bytes | str], message: str
    ) -> CommitResult:
        """Write every file in one commit and advance the branch to it.

        Snapshots the branch tip, layers the files over its tree, creates a
        commit with the tip as parent and fast-forwards the branch. If the
        branch moved in between, the whole sequence is retried from a fresh
        snapshot up to settings.commit_retries times.

        Args:
            files: Repository-relative path -> content
            message: Commit message

        Returns:
            CommitResult describing the new commit

        Raises:
            ConflictError: If the branch kept moving on every attempt
            APIError: For other API failures (the branch is left unchanged)
            TransportError: If the network connection fails
        """
        if not files:
            raise ValueError("atomic commit requires at least one file")

        attempts = self.settings.commit_retries
        last_error: ConflictError | None = None

        for attempt in range(1, attempts + 1):
            try:
                result = self._commit_once(files, message)
            except ConflictError as e:
                last_error = e
                logger.warning(
                    f"Branch {self.branch} moved during commit "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                continue

            result.attempts = attempt
            logger.info(
                f"Committed {len(files)} files to {self.repository}@{self.branch} "
                f"as {result.commit_sha[:7]}"
            )
            return result

        raise ConflictError(
            f"Branch {self.branch} moved on each of {attempts} commit attempts"
        ) from last_error

    def _commit_once(self, files: dict[str, bytes | str], message: str) -> CommitResult:
        parent_sha = self.get_branch_sha()

        response = self.get(
            self._repo_path(f"git/commits/{parent_sha}"), timeout=METADATA_TIMEOUT
        )
        base_tree = response.json()["tree"]["sha"]

        tree = []
        for path in sorted(files):
            response = self.post(
                self._repo_path("git/blobs"),
                json={"content": _encode(files[path]), "encoding": "base64"},
                timeout=WRITE_TIMEOUT,
            )
            tree.append(
                {
                    "path": path.lstrip("/"),
                    "mode": FILE_MODE,
                    "type": "blob",
                    "sha": response.json()["sha"],
                }
            )

        response = self.post(
            self._repo_path("git/trees"),
            json={"base_tree": base_tree, "tree": tree},
            timeout=WRITE_TIMEOUT,
        )
        tree_sha = response.json()["sha"]

        response = self.post(
            self._repo_path("git/commits"),
            json={"message": message, "tree": tree_sha, "parents": [parent_sha]},
            timeout=WRITE_TIMEOUT,
        )
        commit_sha = response.json()["sha"]

        self._update_ref(commit_sha)

        return CommitResult(
            commit_sha=commit_sha,
            tree_sha=tree_sha,
            parent_sha=parent_sha,
            branch=self.branch,
            files=sorted(files),
        )

    def _update_ref(self, commit_sha: str) -> None:
        try:
            self.patch(
                self._repo_path(f"git/refs/heads/{self.branch}"),
                json={"sha": commit_sha, "force": False},
                timeout=WRITE_TIMEOUT,
            )
        except APIError as e:
            # GitHub answers a non fast-forward ref update with 422
            if e.status_code == 422:
                raise ConflictError(e.message, status_code=422) from e
            raise

    def test_connection(self) -> ConnectionDiagnosis:
        """Check credentials, repository format, reachability and push access.

        Never raises; every failure is reported as a ConnectionDiagnosis
        with a specific code.
        """
        if not self.settings.token_value:
            return ConnectionDiagnosis(
                ok=False,
                code="missing_token",
                message="GitHub token is not configured.",
            )
        repo = self.repository
        if not repo:
            return ConnectionDiagnosis(
                ok=False,
                code="missing_repo",
                message="GitHub repository is not configured (expected owner/name).",
            )
        owner, _, name = repo.partition("/")
        if not owner or not name or "/" in name:
            return ConnectionDiagnosis(
                ok=False,
                code="invalid_repo_format",
                message=f"Repository must be in format owner/name, got {repo!r}.",
            )

        logger.info(f"Testing connection to {self.base_url}/repos/{repo}")
        try:
            data = self.fetch()
        except UnauthorizedError:
            return ConnectionDiagnosis(
                ok=False, code="invalid_token", message="GitHub token is invalid or expired."
            )
        except RateLimitError as e:
            when = e.reset_at.strftime("%Y-%m-%d %H:%M:%S UTC") if e.reset_at else "unknown"
            return ConnectionDiagnosis(
                ok=False,
                code="rate_limited",
                message=f"GitHub API rate limit exceeded. Resets at: {when}",
                reset_at=e.reset_at,
            )
        except PermissionDeniedError as e:
            return ConnectionDiagnosis(
                ok=False, code="forbidden", message=f"Access forbidden: {e.message}"
            )
        except NotFoundError:
            return ConnectionDiagnosis(
                ok=False,
                code="repo_not_found",
                message=f"Repository not found: {repo}. Check the name and token access.",
            )
        except TransportError as e:
            return ConnectionDiagnosis(
                ok=False, code="network_error", message=f"Failed to connect to GitHub: {e}"
            )
        except APIError as e:
            return ConnectionDiagnosis(
                ok=False,
                code="api_error",
                message=f"GitHub API error (HTTP {e.status_code}): {e.message}",
            )

        permissions = data.get("permissions") or {}
        if permissions.get("push") is False:
            return ConnectionDiagnosis(
                ok=False,
                code="no_push_permission",
                message="GitHub token does not have push permission to this repository.",
            )

        logger.info(f"Connection to {data.get('full_name', repo)} OK")
        return ConnectionDiagnosis(ok=True, code="ok", message="Connection successful.")
