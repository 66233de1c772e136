"""Runtime settings for the sync core.

Settings are assembled once at process start (see jamstack_sync.config)
and injected into the components that need them.
"""

from pathlib import Path

from pydantic import BaseModel, Field, SecretStr

DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_WEB_BASE_URL = "https://github.com"
PAYLOAD_SOFT_LIMIT = 10 * 1024 * 1024


class SyncSettings(BaseModel):
    """Configuration for the remote repository, media and queue.

    Attributes:
        repository: Target repository as "owner/name"
        branch: Target branch
        api_base_url: REST API base URL
        web_base_url: Base URL used to build commit links
        token: Decrypted API token
        site_url: Base URL of the content source; only images under it are synced
        enabled_content_types: Content types eligible for bulk sync
        debug: Enable debug logging
        state_dir: Directory holding sync state and lock files
        temp_dir: Scratch directory for downloaded and encoded images
        image_formats: Target encodings in preference order
        image_quality: Encoder quality setting
        payload_soft_limit: Commit payload size that triggers a warning
        enforce_payload_limit: Fail the run instead of warning when over the limit
        commit_retries: Attempts for an atomic commit that races a branch update
    """

    repository: str | None = None
    branch: str = "main"
    api_base_url: str = DEFAULT_API_BASE_URL
    web_base_url: str = DEFAULT_WEB_BASE_URL
    token: SecretStr | None = None
    site_url: str = ""
    enabled_content_types: list[str] = Field(default_factory=lambda: ["post"])
    debug: bool = False
    state_dir: Path = Path("./workspace/state")
    temp_dir: Path = Path("./workspace/tmp")
    image_formats: list[str] = Field(default_factory=lambda: ["webp", "avif"])
    image_quality: int = Field(default=85, ge=1, le=100)
    payload_soft_limit: int = PAYLOAD_SOFT_LIMIT
    enforce_payload_limit: bool = False
    commit_retries: int = Field(default=3, ge=1)

    @property
    def token_value(self) -> str | None:
        if self.token is None:
            return None
        return self.token.get_secret_value() or None
