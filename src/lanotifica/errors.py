"""Base exceptions for the LaNotifica relay."""


class LanotificaError(Exception):
    """Base exception for all LaNotifica errors."""

    pass


class CryptoError(LanotificaError):
    """Random source or key generation failed."""

    pass


class StorageError(LanotificaError):
    """Filesystem operation on config or identity paths failed."""

    pass


class ParseError(LanotificaError):
    """Persisted JSON or PEM content is malformed."""

    pass


class AuthError(LanotificaError):
    """Request authentication failed."""

    pass


class NotificationError(LanotificaError):
    """Desktop notification could not be delivered."""

    pass


class CertificateError(LanotificaError):
    """Base for self-signed identity failures."""

    pass


class KeyGenError(CertificateError, CryptoError):
    """Private key generation failed."""

    pass


class SerialGenError(CertificateError, CryptoError):
    """Certificate serial number generation failed."""

    pass


class CertCreateError(CertificateError):
    """Certificate could not be built or signed."""

    pass


class FileWriteError(CertificateError, StorageError):
    """Certificate or key could not be persisted."""

    pass


class FingerprintError(CertificateError, ParseError):
    """Persisted certificate is not valid PEM."""

    pass


class KeyLoadError(CertificateError, ParseError):
    """Persisted private key is not valid PEM."""

    pass


class IdentityMismatchError(CertificateError):
    """Persisted private key does not belong to the persisted certificate."""

    pass


class DiscoveryWarning(RuntimeWarning):
    """Local network advertisement is unavailable.

    Returned by the advertiser rather than raised: discovery is optional.
    """

    pass
