"""Self-signed TLS identity for the relay.

The relay has no certificate authority behind it. On first run it issues
itself a certificate and the phone pins that certificate's SHA-256
fingerprint, delivered out-of-band in the pairing QR code (trust on first
use). Nothing here ever validates a certificate chain.

Files (in the config directory):
- cert.pem: PEM certificate, world-readable (0644)
- key.pem: PEM EC private key, owner-only (0600)

The fingerprint is always recomputed from the certificate on disk, so the
returned Identity describes exactly what the TLS listener will serve.
"""

import hashlib
import ipaddress
import logging
import os
import secrets
import ssl
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from lanotifica.errors import (
    CertCreateError,
    CertificateError,
    FileWriteError,
    FingerprintError,
    IdentityMismatchError,
    KeyGenError,
    KeyLoadError,
    SerialGenError,
    StorageError,
)
from lanotifica.netutil import LOOPBACK_IPV4, get_local_ipv4_addresses
from lanotifica.paths import CERT_FILE_NAME, KEY_FILE_NAME

__all__ = [
    "CertificateError",
    "Identity",
    "calculate_fingerprint",
    "load_identity",
    "load_or_create_identity",
]

logger = logging.getLogger(__name__)

ORGANIZATION = "LaNotifica"
COMMON_NAME = "LaNotifica Server"
DNS_NAMES = ("localhost", "lanotifica.local")
VALIDITY_YEARS = 10
SERIAL_BITS = 128

CERT_MODE = 0o644
KEY_MODE = 0o600

@dataclass(frozen=True)
class Identity:
    """The relay's self-signed TLS identity.

    This is a trust-on-first-use object: clients trust it by comparing
    `fingerprint` with the value they pinned at pairing time.

    Attributes:
        private_key: EC P-256 private key.
        certificate: Parsed certificate.
        certificate_bytes: DER encoding of the certificate, as on disk.
        fingerprint: Uppercase hex SHA-256 of certificate_bytes.
        cert_path: Path of cert.pem.
        key_path: Path of key.pem.
    """

    private_key: ec.EllipticCurvePrivateKey = field(repr=False)
    certificate: x509.Certificate = field(repr=False)
    certificate_bytes: bytes = field(repr=False)
    fingerprint: str
    cert_path: Path
    key_path: Path

    def ssl_context(self) -> ssl.SSLContext:
        """Build a server-side TLS context serving this identity."""
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        context.load_cert_chain(certfile=str(self.cert_path), keyfile=str(self.key_path))
        return context


def load_or_create_identity(
    directory: Path,
    ip_provider: Callable[[], list[str]] | None = None,
) -> Identity:
    """Load the persisted identity, issuing a new one if it is missing.

    Args:
        directory: Config directory holding cert.pem and key.pem.
        ip_provider: Returns local IPv4 addresses to include as SANs.
            Defaults to enumerating local interfaces.

    Returns:
        Identity read back from disk.

    Raises:
        CertificateError: If the identity cannot be loaded or created.
        StorageError: If the persisted files cannot be read.
    """
    directory = Path(directory)
    cert_path = directory / CERT_FILE_NAME
    key_path = directory / KEY_FILE_NAME

    if cert_path.exists() and key_path.exists():
        return load_identity(cert_path, key_path)

    return _create_identity(cert_path, key_path, ip_provider or get_local_ipv4_addresses)


def load_identity(cert_path: Path, key_path: Path) -> Identity:
    """Load certificate and key from disk.

    Raises:
        FingerprintError: If the certificate is not valid PEM.
        KeyLoadError: If the private key is not valid PEM.
        IdentityMismatchError: If the key does not match the certificate.
        StorageError: If either file cannot be read.
    """
    certificate = _load_certificate(cert_path)
    der = certificate.public_bytes(serialization.Encoding.DER)
    fingerprint = _fingerprint(der)

    try:
        private_key = serialization.load_pem_private_key(_read_file(key_path), password=None)
    except (ValueError, TypeError) as e:
        raise KeyLoadError(f"loading private key {key_path}: {e}") from e

    if not isinstance(private_key, ec.EllipticCurvePrivateKey):
        raise KeyLoadError(f"private key {key_path} is not an EC key")

    if _public_bytes(private_key.public_key()) != _public_bytes(certificate.public_key()):
        raise IdentityMismatchError(
            f"private key {key_path} does not match certificate {cert_path}"
        )

    return Identity(
        private_key=private_key,
        certificate=certificate,
        certificate_bytes=der,
        fingerprint=fingerprint,
        cert_path=cert_path,
        key_path=key_path,
    )


def calculate_fingerprint(cert_path: Path) -> str:
    """Compute the uppercase hex SHA-256 fingerprint of a PEM certificate file.

    Raises:
        FingerprintError: If the file holds no PEM certificate.
        StorageError: If the file cannot be read.
    """
    certificate = _load_certificate(cert_path)
    return _fingerprint(certificate.public_bytes(serialization.Encoding.DER))


def _fingerprint(der: bytes) -> str:
    return hashlib.sha256(der).hexdigest().upper()


def _load_certificate(cert_path: Path) -> x509.Certificate:
    """Parse the first PEM certificate in a file."""
    try:
        return x509.load_pem_x509_certificate(_read_file(cert_path))
    except ValueError as e:
        raise FingerprintError(f"failed to decode PEM certificate {cert_path}: {e}") from e


def _read_file(path: Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise StorageError(f"reading {path}: {e}") from e


def _public_bytes(public_key) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _create_identity(
    cert_path: Path,
    key_path: Path,
    ip_provider: Callable[[], list[str]],
) -> Identity:
    """Issue a new self-signed identity, persist it and load it back."""
    logger.info("Generating new self-signed certificate")

    try:
        private_key = ec.generate_private_key(ec.SECP256R1())
    except Exception as e:
        raise KeyGenError(f"generating private key: {e}") from e

    try:
        serial = secrets.randbelow((1 << SERIAL_BITS) - 1) + 1
    except (OSError, NotImplementedError) as e:
        raise SerialGenError(f"generating serial number: {e}") from e

    ips = [LOOPBACK_IPV4] + [ip for ip in ip_provider() if ip != LOOPBACK_IPV4]
    certificate = _build_certificate(private_key, serial, ips)

    cert_pem = certificate.public_bytes(serialization.Encoding.PEM)
    key_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )

    _write_atomically([(key_path, key_pem, KEY_MODE), (cert_path, cert_pem, CERT_MODE)])
    logger.info(f"Certificate written to {cert_path}")

    return load_identity(cert_path, key_path)


def _build_certificate(
    private_key: ec.EllipticCurvePrivateKey,
    serial: int,
    ips: list[str],
) -> x509.Certificate:
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, ORGANIZATION),
            x509.NameAttribute(NameOID.COMMON_NAME, COMMON_NAME),
        ]
    )
    now = datetime.now(timezone.utc)

    try:
        alt_names: list[x509.GeneralName] = [
            x509.IPAddress(ipaddress.ip_address(ip)) for ip in ips
        ]
        alt_names.extend(x509.DNSName(dns) for dns in DNS_NAMES)

        builder = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(private_key.public_key())
            .serial_number(serial)
            .not_valid_before(now)
            .not_valid_after(_add_years(now, VALIDITY_YEARS))
            .add_extension(x509.SubjectAlternativeName(alt_names), critical=False)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]),
                critical=False,
            )
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        )
        return builder.sign(private_key, hashes.SHA256())
    except (ValueError, TypeError) as e:
        raise CertCreateError(f"creating certificate: {e}") from e


def _add_years(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return moment.replace(year=moment.year + years, month=3, day=1)


def _write_atomically(files: list[tuple[Path, bytes, int]]) -> None:
    """Write all files or none of them.

    Each file is staged in a temporary file next to its destination and
    renamed into place. On failure every staged or renamed file is removed.

    Raises:
        FileWriteError: If any write or rename fails.
    """
    staged: list[Path] = []
    placed: list[Path] = []

    try:
        for path, data, mode in files:
            path.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            staged.append(Path(tmp_name))
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp_name, mode)

        for tmp_path, (path, _, _) in zip(staged, files):
            os.replace(tmp_path, path)
            placed.append(path)
    except OSError as e:
        for leftover in staged + placed:
            try:
                leftover.unlink(missing_ok=True)
            except OSError:
                logger.warning(f"Could not remove {leftover} after failed write")
        raise FileWriteError(f"writing identity files: {e}") from e
