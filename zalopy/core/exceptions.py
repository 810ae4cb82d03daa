"""
Exceptions raised by the zalopy protocol client.

Every exception carries a machine-checkable ``kind`` so hosts can branch on
the failure class without matching on message text.
"""
from typing import Optional


class ZaloException(Exception):
    """Base exception for all zalopy errors."""

    kind = 'error'

    def __init__(self, message: str, error_code: Optional[int] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            error_code: Numeric error code returned by the remote platform (if any)
        """
        self.error_code = error_code
        self.message = message
        super().__init__(message)


class TransientNetworkError(ZaloException):
    """HTTP or socket failure. Retrying is left to the caller."""

    kind = 'transient_network'


class ProtocolError(ZaloException):
    """Unexpected response shape from the remote platform."""

    kind = 'protocol'


class AuthExpiredError(ZaloException):
    """QR login declined or expired, or the session cookie was invalidated."""

    kind = 'auth_expired'


class CryptoError(ZaloException):
    """Key derivation or decryption failure."""

    kind = 'crypto'


class KeyDerivationError(CryptoError):
    """The per-login encrypt key could not be derived."""
    pass


class DecryptionError(CryptoError):
    """A response body or real-time frame could not be decrypted."""
    pass


class LimitExceededError(ZaloException):
    """A hard limit (file size, file count, connection count) was exceeded."""

    kind = 'limit_exceeded'
