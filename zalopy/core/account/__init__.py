"""Account credential and cookie jar models."""
from .cookies import Cookie, CookieJar
from .credential import AccountCredential, ConnectionStatus

__all__ = [
    'Cookie',
    'CookieJar',
    'AccountCredential',
    'ConnectionStatus',
]
