"""Desktop notification delivery.

Notifications forwarded by the phone are shown with `notify-send`
(libnotify), decorated with the app's Play Store icon when available.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from lanotifica.errors import NotificationError
from lanotifica.icons import IconCache

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Notification"
DEFAULT_ICON = "preferences-system-notifications"


@dataclass(frozen=True)
class NotificationRequest:
    """A notification forwarded by the phone."""

    message: str
    title: str = ""
    app_name: str = ""
    package_name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "NotificationRequest":
        """Create from a decoded JSON body.

        Raises:
            ValueError: If the body is not an object of string fields.
        """
        if not isinstance(data, dict):
            raise ValueError("notification body must be a JSON object")

        fields = {}
        for key in ("message", "title", "app_name", "package_name"):
            value = data.get(key, "")
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
            fields[key] = value

        return cls(**fields)


class Notifier(Protocol):
    """Delivers a notification to the desktop."""

    async def send(self, request: NotificationRequest) -> None:
        """Show the notification.

        Raises:
            NotificationError: If delivery failed.
        """
        ...


class DesktopNotifier:
    """Show notifications through notify-send.

    Uses dependency injection for the icon cache so tests can run
    without network access.
    """

    def __init__(self, icon_cache: IconCache | None = None, command: str = "notify-send"):
        self._icon_cache = icon_cache
        self._command = command

    async def build_args(self, request: NotificationRequest) -> list[str]:
        """Build the notify-send command line for a request."""
        args = [self._command, "--icon", DEFAULT_ICON]
        if request.app_name:
            args += ["--app-name", request.app_name]

        if self._icon_cache and request.package_name:
            icon_path = await self._icon_cache.get_icon_path(request.package_name)
            if icon_path:
                args += ["--hint", f"string:image-path:file://{icon_path}"]

        # "--" keeps a message starting with "-" from being parsed as an option
        args += ["--", request.title or DEFAULT_TITLE, request.message]
        return args

    async def send(self, request: NotificationRequest) -> None:
        args = await self.build_args(request)

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise NotificationError(f"cannot run {self._command}: {e}") from e

        try:
            _, stderr = await proc.communicate()
        except asyncio.CancelledError:
            # Caller timed out; don't leave notify-send running
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
            raise

        if proc.returncode:
            reason = stderr.decode(errors="replace").strip()
            raise NotificationError(f"{self._command} exited with {proc.returncode}: {reason}")
