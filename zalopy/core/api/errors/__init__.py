"""Remote platform error codes."""
from .api_errors import ZaloAPIError, APIErrorCodes

__all__ = ['ZaloAPIError', 'APIErrorCodes']
