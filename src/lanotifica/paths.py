"""Filesystem locations for LaNotifica.

Follows the XDG Base Directory convention:
- config: $XDG_CONFIG_HOME/lanotifica or ~/.config/lanotifica
- cache:  $XDG_CACHE_HOME/lanotifica or ~/.cache/lanotifica

Paths are resolved once at startup into an AppPaths object and passed
to the components that need them.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

APP_DIR_NAME = "lanotifica"

CONFIG_FILE_NAME = "config.json"
CERT_FILE_NAME = "cert.pem"
KEY_FILE_NAME = "key.pem"


@dataclass(frozen=True)
class AppPaths:
    """Resolved per-user directories.

    Attributes:
        config_dir: Directory holding config.json, cert.pem and key.pem.
        cache_dir: Directory holding cached app icons.
    """

    config_dir: Path
    cache_dir: Path

    @property
    def config_file(self) -> Path:
        return self.config_dir / CONFIG_FILE_NAME

    @property
    def cert_file(self) -> Path:
        return self.config_dir / CERT_FILE_NAME

    @property
    def key_file(self) -> Path:
        return self.config_dir / KEY_FILE_NAME

    @property
    def icon_dir(self) -> Path:
        return self.cache_dir / "icons"

    @classmethod
    def from_environment(
        cls,
        environ: Mapping[str, str] | None = None,
        home: Path | None = None,
    ) -> "AppPaths":
        """Resolve directories from XDG environment variables.

        Args:
            environ: Environment mapping. Defaults to os.environ.
            home: Home directory fallback. Defaults to Path.home().

        Returns:
            AppPaths for this user.
        """
        env = os.environ if environ is None else environ
        home_dir = home if home is not None else Path.home()

        config_base = env.get("XDG_CONFIG_HOME") or str(home_dir / ".config")
        cache_base = env.get("XDG_CACHE_HOME") or str(home_dir / ".cache")

        return cls(
            config_dir=Path(config_base) / APP_DIR_NAME,
            cache_dir=Path(cache_base) / APP_DIR_NAME,
        )

