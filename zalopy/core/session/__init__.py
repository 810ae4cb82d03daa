"""
Session and credential storage.

Provides:
- SessionStore: TTL key/value protocol for transient QR login state
- CredentialStore: protocol for durable account credentials
- Memory and SQLite implementations of both
"""
from .protocols import SessionStore, CredentialStore
from .models import QRLoginSession
from .memory_session import MemorySessionStore, MemoryCredentialStore
from .sqlite_session import SQLiteStore, SQLiteSessionStore, SQLiteCredentialStore

__all__ = [
    'SessionStore',
    'CredentialStore',
    'QRLoginSession',
    'MemorySessionStore',
    'MemoryCredentialStore',
    'SQLiteStore',
    'SQLiteSessionStore',
    'SQLiteCredentialStore',
]
