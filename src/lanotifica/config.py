"""Configuration management for the LaNotifica relay.

The configuration lives in a single JSON file. It is created with a fresh
shared secret on first run and loaded verbatim afterwards; the secret is
never regenerated once the file exists.
"""

import json
import logging
import os
import re
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from lanotifica.errors import CryptoError, ParseError, StorageError
from lanotifica.paths import AppPaths

logger = logging.getLogger(__name__)

SECRET_BYTES = 32
SECRET_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")

DEFAULT_PORT = ":19420"
DEFAULT_READ_TIMEOUT = 10
DEFAULT_WRITE_TIMEOUT = 10
DEFAULT_IDLE_TIMEOUT = 120
DEFAULT_ICON_CACHE_MAX_AGE_DAYS = 180


def generate_secret() -> str:
    """Generate the shared secret: 32 random bytes as lowercase hex.

    Raises:
        CryptoError: If the system random source is unavailable.
    """
    try:
        return secrets.token_hex(SECRET_BYTES)
    except (OSError, NotImplementedError) as e:
        raise CryptoError(f"failed to generate secret: {e}") from e


@dataclass(frozen=True)
class Config:
    """Relay configuration.

    Field names map to JSON keys via JSON_KEYS.
    """

    secret: str
    port: str = DEFAULT_PORT
    read_timeout: int = DEFAULT_READ_TIMEOUT  # seconds
    write_timeout: int = DEFAULT_WRITE_TIMEOUT  # seconds
    idle_timeout: int = DEFAULT_IDLE_TIMEOUT  # seconds
    icon_cache_max_age_days: int = DEFAULT_ICON_CACHE_MAX_AGE_DAYS

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks
        return (
            f"Config(port={self.port!r}, secret=<redacted>, "
            f"read_timeout={self.read_timeout}, write_timeout={self.write_timeout}, "
            f"idle_timeout={self.idle_timeout}, "
            f"icon_cache_max_age_days={self.icon_cache_max_age_days})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {key: getattr(self, attr) for attr, key in JSON_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        """Create from a decoded JSON document.

        Missing keys take their default value, except the secret.

        Raises:
            ParseError: If the document is not a valid configuration.
        """
        if not isinstance(data, dict):
            raise ParseError("config must be a JSON object")

        secret = data.get("secret")
        if not isinstance(secret, str) or not SECRET_PATTERN.match(secret):
            raise ParseError("config secret must be 64 hex characters")

        port = data.get("port", DEFAULT_PORT)
        if not isinstance(port, str):
            raise ParseError("config port must be a string")

        return cls(
            secret=secret,
            port=port,
            read_timeout=_int_field(data, "read_timeout_seconds", DEFAULT_READ_TIMEOUT),
            write_timeout=_int_field(data, "write_timeout_seconds", DEFAULT_WRITE_TIMEOUT),
            idle_timeout=_int_field(data, "idle_timeout_seconds", DEFAULT_IDLE_TIMEOUT),
            icon_cache_max_age_days=_int_field(
                data, "icon_cache_max_age_days", DEFAULT_ICON_CACHE_MAX_AGE_DAYS
            ),
        )


JSON_KEYS = {
    "port": "port",
    "secret": "secret",
    "read_timeout": "read_timeout_seconds",
    "write_timeout": "write_timeout_seconds",
    "idle_timeout": "idle_timeout_seconds",
    "icon_cache_max_age_days": "icon_cache_max_age_days",
}


def _int_field(data: dict, key: str, default: int) -> int:
    value = data.get(key, default)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParseError(f"config {key} must be an integer")
    return value


def default_config() -> Config:
    """Return the default configuration with a freshly generated secret."""
    return Config(secret=generate_secret())


def _create_default(path: Path) -> None:
    """Write a default config file with owner-only permissions."""
    try:
        path.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError(f"creating config directory: {e}") from e

    data = json.dumps(default_config().to_dict(), indent=2)

    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        try:
            os.write(fd, data.encode())
        finally:
            os.close(fd)
    except OSError as e:
        raise StorageError(f"writing config file: {e}") from e

    logger.info(f"Created default config at {path}")


def load_config(paths: AppPaths) -> Config:
    """Load the configuration, creating a default one on first run.

    Args:
        paths: Resolved application paths.

    Returns:
        Config read from disk.

    Raises:
        CryptoError: If a new secret could not be generated.
        StorageError: If the file could not be created or read.
        ParseError: If the existing file is malformed.
    """
    path = paths.config_file

    if not path.exists():
        _create_default(path)

    try:
        content = path.read_bytes()
    except OSError as e:
        raise StorageError(f"reading config file: {e}") from e

    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"parsing config file: {e}") from e

    return Config.from_dict(data)
