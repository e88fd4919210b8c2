"""QR code pairing payload.

The QR code carries everything the phone needs to trust and use the relay:

    <secret>|<fingerprint>

- secret: shared bearer token (64 lowercase hex chars)
- fingerprint: SHA-256 of the relay certificate (64 uppercase hex chars)

Both parts are hex, so the separator can never appear inside them. The
relay address is not included: the phone finds it via mDNS or manual entry.
"""

import base64
import io
import logging

import qrcode
from PIL import Image
from qrcode.main import QRCode

logger = logging.getLogger(__name__)

SEPARATOR = "|"
QR_SIZE = 256  # pixels


def build_pairing_payload(secret: str, fingerprint: str) -> str:
    """Join secret and fingerprint into the QR wire format."""
    return f"{secret}{SEPARATOR}{fingerprint}"


def parse_pairing_payload(data: str) -> tuple[str, str]:
    """Split a pairing payload back into (secret, fingerprint).

    Raises:
        ValueError: If the payload has no separator or an empty part.
    """
    secret, sep, fingerprint = data.partition(SEPARATOR)
    secret = secret.strip()
    fingerprint = fingerprint.strip()
    if not sep or not secret or not fingerprint:
        raise ValueError("pairing payload must be <secret>|<fingerprint>")
    return secret, fingerprint


def build_pairing_png(secret: str, fingerprint: str, size: int = QR_SIZE) -> bytes:
    """Render the pairing payload as a PNG QR code.

    Never raises: on failure a warning is logged and b"" is returned, so
    the page embedding the image can still be served.
    """
    return PairingQr(secret, fingerprint).to_png_bytes(size)


class PairingQr:
    """Render the pairing payload for display.

    Example:
        qr = PairingQr(config.secret, identity.fingerprint)
        click.echo(qr.to_terminal())
    """

    def __init__(self, secret: str, fingerprint: str):
        self.payload = build_pairing_payload(secret, fingerprint)

    def _create_qr(self) -> QRCode:
        qr = qrcode.QRCode(
            version=None,  # Auto-size
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(self.payload)
        qr.make(fit=True)
        return qr

    def to_png_bytes(self, size: int = QR_SIZE) -> bytes:
        """Encode as a size x size PNG.

        Returns:
            PNG bytes, or b"" if encoding failed.
        """
        try:
            qr = self._create_qr()
            img = qr.make_image(fill_color="black", back_color="white").get_image()
            img = img.resize((size, size), Image.Resampling.NEAREST)

            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
            return buffer.getvalue()
        except Exception as e:
            logger.warning(f"Failed to generate QR code: {e}")
            return b""

    def to_data_uri(self, size: int = QR_SIZE) -> str:
        """Encode as a base64 PNG data URI for embedding in HTML."""
        png = self.to_png_bytes(size)
        return "data:image/png;base64," + base64.b64encode(png).decode("ascii")

    def to_terminal(self) -> str:
        """Render with block characters for terminal display."""
        qr = self._create_qr()

        output = io.StringIO()
        qr.print_ascii(out=output, invert=True)
        return output.getvalue()
