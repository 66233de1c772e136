"""Settings loading and API token encryption.

Settings come from an optional JSON file overlaid with JAMSTACK_*
environment variables:

    {
      "repository": "owner/site",
      "branch": "main",
      "site_url": "https://example.org",
      "encrypted_token": "gAAAAAB..."
    }

The token is normally stored encrypted (Fernet) and decrypted with the key
in JAMSTACK_SECRET_KEY. A token that cannot be decrypted is a configuration
error; it is never used as-is.
"""

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError as PydanticValidationError

from jamstack_sync.exceptions import ConfigurationError
from schemas.settings import SyncSettings

logger = logging.getLogger(__name__)

ENV_PREFIX = "JAMSTACK_"
SECRET_KEY_ENV = "JAMSTACK_SECRET_KEY"
ENCRYPTED_TOKEN_KEY = "encrypted_token"
DEFAULT_CONFIG_PATH = Path("./jamstack-sync.json")

# Settings given as comma-separated lists in the environment
LIST_FIELDS = {"enabled_content_types", "image_formats"}


def generate_key() -> str:
    """Create a new secret key for JAMSTACK_SECRET_KEY."""
    return Fernet.generate_key().decode("ascii")


def _fernet(secret_key: str | None) -> Fernet:
    if not secret_key:
        raise ConfigurationError(f"{SECRET_KEY_ENV} is not set")
    try:
        return Fernet(secret_key.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as e:
        raise ConfigurationError(f"{SECRET_KEY_ENV} is not a valid key: {e}") from e


def encrypt_token(token: str, secret_key: str | None) -> str:
    """Encrypt an API token for storage in the settings file."""
    return _fernet(secret_key).encrypt(token.encode("utf-8")).decode("ascii")


def decrypt_token(encrypted: str, secret_key: str | None) -> str:
    """Decrypt a stored API token.

    Raises:
        ConfigurationError: If the key is missing or wrong, or the token is corrupt
    """
    try:
        return _fernet(secret_key).decrypt(encrypted.encode("ascii")).decode("utf-8")
    except (InvalidToken, UnicodeError) as e:
        raise ConfigurationError(
            f"Could not decrypt the API token; check {SECRET_KEY_ENV}"
        ) from e


def _read_file(path: Path) -> dict:
    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {path}")
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Settings file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {path} must contain a JSON object")
    return data


def _from_env(env: Mapping[str, str]) -> dict:
    overrides: dict = {}
    for name in [*SyncSettings.model_fields, ENCRYPTED_TOKEN_KEY]:
        value = env.get(f"{ENV_PREFIX}{name.upper()}")
        if value is None:
            continue
        if name in LIST_FIELDS:
            overrides[name] = [part.strip() for part in value.split(",") if part.strip()]
        else:
            overrides[name] = value
    return overrides


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> SyncSettings:
    """Assemble the sync settings.

    Args:
        path: JSON settings file; if None only the environment is used
        env: Environment mapping (default: os.environ)

    Returns:
        Validated SyncSettings with the token decrypted

    Raises:
        ConfigurationError: If the file is unreadable, a value is invalid,
                            or the token cannot be decrypted
    """
    env = os.environ if env is None else env

    data = _read_file(path) if path is not None else {}
    data.update(_from_env(env))

    encrypted = data.pop(ENCRYPTED_TOKEN_KEY, None)
    if encrypted:
        data["token"] = decrypt_token(encrypted, env.get(SECRET_KEY_ENV))

    try:
        settings = SyncSettings.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e

    source = path if path is not None else "environment"
    logger.debug(f"Loaded settings from {source} (repository: {settings.repository})")
    return settings
