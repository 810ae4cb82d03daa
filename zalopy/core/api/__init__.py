"""HTTP transport, configuration and endpoints of the remote platform."""
from .config import (
    APIConfig,
    ProxyConfig,
    SSLConfig,
    TimeoutConfig,
    LoginConfig,
    RealtimeConfig,
)
from .async_client import AsyncAPIClient, APIResponse
from .errors import ZaloAPIError, APIErrorCodes
from .events import EventEmitter
from .signed import SignedRequester, type_tag_for
from . import endpoints

__all__ = [
    'APIConfig',
    'ProxyConfig',
    'SSLConfig',
    'TimeoutConfig',
    'LoginConfig',
    'RealtimeConfig',
    'AsyncAPIClient',
    'APIResponse',
    'ZaloAPIError',
    'APIErrorCodes',
    'EventEmitter',
    'SignedRequester',
    'type_tag_for',
    'endpoints',
]
