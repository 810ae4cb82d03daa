"""
zalopy - Async Python client for the Zalo web protocol.

Usage:
    >>> from zalopy import ZaloClient, OutboundSendRequest
    >>>
    >>> async with ZaloClient() as zalo:
    ...     started = await zalo.start_login()
    ...     result = await zalo.poll_login(started.qr_session_id)
    ...     await zalo.send(result.credential, OutboundSendRequest('12345', text='hello'))
"""
import logging
from .client import ZaloClient

# Configuration
from .core.api import (
    APIConfig,
    ProxyConfig,
    SSLConfig,
    TimeoutConfig,
    LoginConfig,
    RealtimeConfig,
    AsyncAPIClient,
)

# Accounts and storage
from .core.account import AccountCredential, ConnectionStatus, Cookie, CookieJar
from .core.session import (
    SessionStore,
    CredentialStore,
    MemorySessionStore,
    MemoryCredentialStore,
    SQLiteSessionStore,
    SQLiteCredentialStore,
)

# Components
from .core.auth import LoginFlow, LoginState, LoginResult, LoginEvent
from .core.realtime import (
    ConnectionManager,
    ConnectionRegistry,
    InboundEventEnvelope,
    StatusEvent,
    EventKind,
    ConnectionEvent,
)
from .core.messaging import (
    MessageClient,
    OutboundSendRequest,
    OutboundAttachment,
    Mention,
    SendResult,
)
from .core.exceptions import (
    ZaloException,
    TransientNetworkError,
    ProtocolError,
    AuthExpiredError,
    CryptoError,
    KeyDerivationError,
    DecryptionError,
    LimitExceededError,
)

__version__ = '1.0.0'


def setup_logging(level=logging.INFO):
    """
    Configure logging for zalopy modules.

    This ensures that all zalopy loggers are properly configured
    to show log messages at the specified level.

    Args:
        level: Logging level (default: logging.INFO)
    """
    loggers = [
        'zalopy',
        'zalopy.api',
        'zalopy.login',
        'zalopy.realtime',
        'zalopy.messages',
        'zalopy.upload',
        'zalopy.session',
        'zalopy.client',
    ]

    for logger_name in loggers:
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        logger.propagate = True


__all__ = [
    'ZaloClient',
    'APIConfig',
    'ProxyConfig',
    'SSLConfig',
    'TimeoutConfig',
    'LoginConfig',
    'RealtimeConfig',
    'AsyncAPIClient',
    'AccountCredential',
    'ConnectionStatus',
    'Cookie',
    'CookieJar',
    'SessionStore',
    'CredentialStore',
    'MemorySessionStore',
    'MemoryCredentialStore',
    'SQLiteSessionStore',
    'SQLiteCredentialStore',
    'LoginFlow',
    'LoginState',
    'LoginResult',
    'LoginEvent',
    'ConnectionManager',
    'ConnectionRegistry',
    'InboundEventEnvelope',
    'StatusEvent',
    'EventKind',
    'ConnectionEvent',
    'MessageClient',
    'OutboundSendRequest',
    'OutboundAttachment',
    'Mention',
    'SendResult',
    'ZaloException',
    'TransientNetworkError',
    'ProtocolError',
    'AuthExpiredError',
    'CryptoError',
    'KeyDerivationError',
    'DecryptionError',
    'LimitExceededError',
    'setup_logging',
]
