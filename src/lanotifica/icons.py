"""Play Store icon cache.

Icons are fetched once per package name and kept on disk under the cache
directory. A cached icon older than the configured maximum age is fetched
again; if that fails, the old copy is still used.
"""

import asyncio
import logging
import os
import re
import tempfile
import time
from pathlib import Path

import aiohttp

logger = logging.getLogger(__name__)

PLAY_STORE_URL = "https://play.google.com/store/apps/details"
ICON_URL_PATTERN = re.compile(r"https://play-lh\.googleusercontent\.com/[^\"'\s]+")

# Android package names: letters, digits, underscores, dots
PACKAGE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+(\.[A-Za-z0-9_]+)*$")

DOWNLOAD_TIMEOUT = 30.0  # seconds
SECONDS_PER_DAY = 86400


class IconNotFoundError(Exception):
    """The Play Store has no icon for this package."""

    pass


class IconCache:
    """Fetch-if-absent cache of app icons.

    Example:
        cache = IconCache(paths.icon_dir, max_age_days=180)
        path = await cache.get_icon_path("com.whatsapp")  # Path or None
    """

    def __init__(
        self,
        directory: Path,
        max_age_days: int = 180,
        store_url: str = PLAY_STORE_URL,
        icon_url_pattern: re.Pattern = ICON_URL_PATTERN,
        timeout: float = DOWNLOAD_TIMEOUT,
    ):
        """Initialize icon cache.

        Args:
            directory: Directory holding <package>.png files.
            max_age_days: Refetch icons older than this. 0 disables refetching.
            store_url: Store page URL, queried with ?id=<package>.
            icon_url_pattern: Regex locating the icon URL in the store page.
            timeout: Total timeout for fetching one icon.
        """
        self.directory = Path(directory)
        self._max_age_days = max_age_days
        self._store_url = store_url
        self._icon_url_pattern = icon_url_pattern
        self._timeout = timeout

    def path_for(self, package_name: str) -> Path:
        return self.directory / f"{package_name}.png"

    def is_fresh(self, path: Path) -> bool:
        """Whether a cached icon exists and is within the maximum age."""
        try:
            mtime = path.stat().st_mtime
        except OSError:
            return False
        if self._max_age_days <= 0:
            return True
        return time.time() - mtime < self._max_age_days * SECONDS_PER_DAY

    async def get_icon_path(self, package_name: str) -> Path | None:
        """Return the cached icon path, downloading it first if needed.

        Returns:
            Path to the icon, or None if it cannot be obtained.
        """
        if not package_name or not PACKAGE_NAME_PATTERN.match(package_name):
            return None

        path = self.path_for(package_name)
        if self.is_fresh(path):
            return path

        try:
            await self._download(package_name, path)
        except (aiohttp.ClientError, asyncio.TimeoutError, IconNotFoundError, OSError) as e:
            logger.debug(f"No icon for {package_name}: {e}")
            return path if path.exists() else None

        return path

    async def _download(self, package_name: str, path: Path) -> None:
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        async with aiohttp.ClientSession(timeout=timeout) as http:
            async with http.get(self._store_url, params={"id": package_name}) as resp:
                if resp.status != 200:
                    raise IconNotFoundError(f"store page returned HTTP {resp.status}")
                page = await resp.text()

            match = self._icon_url_pattern.search(page)
            if match is None:
                raise IconNotFoundError("no icon found in store page")

            async with http.get(match.group(0)) as resp:
                if resp.status != 200:
                    raise IconNotFoundError(f"icon download returned HTTP {resp.status}")
                data = await resp.read()

        self._save(path, data)
        logger.debug(f"Cached icon for {package_name} at {path}")

    def _save(self, path: Path, data: bytes) -> None:
        """Write the icon atomically so readers never see a partial file."""
        self.directory.mkdir(mode=0o750, parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
