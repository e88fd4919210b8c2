"""HTTPS relay server.

Routes:
- GET /              - Pairing page with the QR code
- GET /health        - Health check (no auth)
- GET /favicon.png   - Page icon
- POST /notification - Show a desktop notification (bearer auth)
"""

import asyncio
import io
import logging
import ssl

from aiohttp import web
from PIL import Image, ImageDraw

from lanotifica.auth import require_bearer
from lanotifica.config import Config
from lanotifica.errors import NotificationError
from lanotifica.netutil import parse_host, parse_port
from lanotifica.notification import NotificationRequest, Notifier
from lanotifica.pairing import PairingQr

logger = logging.getLogger(__name__)

FAVICON_SIZE = 64  # pixels
FAVICON_CACHE_CONTROL = "public, max-age=86400"


class RelayServer:
    """aiohttp server for the relay endpoints.

    The config and fingerprint are captured at construction and never
    change afterwards.
    """

    def __init__(self, config: Config, fingerprint: str, notifier: Notifier):
        """Initialize relay server.

        Args:
            config: Loaded configuration (secret, timeouts).
            fingerprint: Certificate fingerprint shown in the pairing QR code.
            notifier: Delivers accepted notifications.
        """
        self._config = config
        self._notifier = notifier
        self._home_page = render_home_page(PairingQr(config.secret, fingerprint).to_data_uri())
        self._favicon = render_favicon()

        self.app = web.Application()
        self.app.router.add_get("/", self._handle_home)
        self.app.router.add_get("/health", self._handle_health)
        self.app.router.add_get("/favicon.png", self._handle_favicon)
        self.app.router.add_route(
            "*", "/notification", require_bearer(config.secret, self._handle_notification)
        )

        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    async def start(self, ssl_context: ssl.SSLContext | None = None) -> None:
        """Start listening on the configured address.

        Args:
            ssl_context: TLS context; None serves plain HTTP.
        """
        host = parse_host(self._config.port)
        port = parse_port(self._config.port)

        self._runner = web.AppRunner(self.app, keepalive_timeout=self._config.idle_timeout)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, host, port, ssl_context=ssl_context)
        await self._site.start()

        scheme = "https" if ssl_context else "http"
        logger.info(f"LaNotifica server started on {scheme}://{host}:{port}")

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None

    async def _handle_home(self, request: web.Request) -> web.Response:
        return web.Response(text=self._home_page, content_type="text/html", charset="utf-8")

    async def _handle_favicon(self, request: web.Request) -> web.Response:
        return web.Response(
            body=self._favicon,
            content_type="image/png",
            headers={"Cache-Control": FAVICON_CACHE_CONTROL},
        )

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def _handle_notification(self, request: web.Request) -> web.Response:
        if request.method != "POST":
            return web.Response(status=405, text="Method not allowed")

        try:
            data = await asyncio.wait_for(request.json(), timeout=self._config.read_timeout)
            notification = NotificationRequest.from_dict(data)
        except asyncio.TimeoutError:
            return web.Response(status=408, text="Request timeout")
        except ValueError:
            return web.Response(status=400, text="Invalid JSON body")

        if not notification.message:
            return web.Response(status=400, text="Message is required")

        try:
            await asyncio.wait_for(
                self._notifier.send(notification), timeout=self._config.write_timeout
            )
        except (NotificationError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to send notification: {e}")
            return web.Response(status=500, text="Failed to send notification")

        logger.info(f"Notification sent: {notification.title} - {notification.message}")
        return web.json_response({"status": "sent"})


def render_favicon(size: int = FAVICON_SIZE) -> bytes:
    """Draw the page icon: a white bell-shaped badge on the page background colour."""
    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    unit = size // 8

    draw.rounded_rectangle((0, 0, size - 1, size - 1), radius=2 * unit, fill="#16213e")
    draw.pieslice((2 * unit, unit, 6 * unit, 5 * unit), 180, 360, fill="white")
    draw.rectangle((2 * unit, 3 * unit, 6 * unit, 5 * unit), fill="white")
    draw.ellipse((int(3.5 * unit), 5 * unit, int(4.5 * unit), 6 * unit), fill="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def render_home_page(qr_data_uri: str) -> str:
    """Render the pairing page around an embedded QR image."""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>LaNotifica</title>
    <link rel="icon" type="image/png" href="/favicon.png">
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: linear-gradient(135deg, #1a1a2e 0%, #16213e 100%);
            min-height: 100vh;
            margin: 0;
            display: flex;
            justify-content: center;
            align-items: center;
            color: #e0e0e0;
        }}
        .container {{
            background: rgba(255, 255, 255, 0.05);
            border-radius: 24px;
            padding: 40px;
            max-width: 480px;
            text-align: center;
        }}
        .qr-container {{
            background: white;
            border-radius: 16px;
            padding: 20px;
            display: inline-block;
            margin-bottom: 32px;
        }}
        .qr-container img {{ display: block; width: 256px; height: 256px; }}
        .instructions {{ text-align: left; }}
        .note {{ margin-top: 24px; font-size: 0.9rem; color: #aaa; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>LaNotifica</h1>
        <p>Forward Android notifications to your desktop</p>
        <div class="qr-container">
            <img src="{qr_data_uri}" alt="QR Code">
        </div>
        <div class="instructions">
            <h2>Setup Instructions</h2>
            <ol>
                <li>Install the <strong>LaNotifica</strong> app on your Android device</li>
                <li>Open the app and tap <strong>Scan QR Code</strong></li>
                <li>Point your camera at the QR code above</li>
                <li>Grant <strong>Notification Access</strong> permission</li>
                <li>Disable <strong>Battery Optimization</strong> for the app</li>
                <li>Enable the <strong>Forward Notifications</strong> switch</li>
            </ol>
        </div>
        <p class="note">
            The QR code contains the authentication token and the certificate
            fingerprint. Keep it private and don't share it.
        </p>
    </div>
</body>
</html>
"""
