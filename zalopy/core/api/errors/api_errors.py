"""Remote platform error codes and exceptions."""
from typing import Dict, Optional

from ...exceptions import ProtocolError


class APIErrorCodes:
    """Error codes returned by the remote platform's login and message APIs."""

    SUCCESS = 0
    QR_PENDING = 8
    QR_DECLINED = -13
    LOCAL_TIMEOUT = -99

    ERROR_CODES: Dict[int, str] = {
        SUCCESS: 'Success',
        QR_PENDING: 'Waiting for the QR code to be scanned or confirmed',
        QR_DECLINED: 'The login request was declined on the phone',
        LOCAL_TIMEOUT: 'Timed out waiting for the phone',
    }

    @classmethod
    def get_message(cls, code: int) -> str:
        """Gets error message for error code."""
        return cls.ERROR_CODES.get(code, f"Unknown error: {code}")


class ZaloAPIError(ProtocolError):
    """The remote platform answered with a non-zero ``error_code``."""

    def __init__(self, code: int, message: Optional[str] = None):
        self.code = code
        super().__init__(message or APIErrorCodes.get_message(code), error_code=code)
