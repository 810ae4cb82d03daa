"""
In-memory stores.

Useful for testing and for short-lived processes.
"""
import copy
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..account import AccountCredential


class MemorySessionStore:
    """
    In-memory TTL key/value store.

    Expired entries are dropped lazily on access.

    Example:
        >>> store = MemorySessionStore()
        >>> await store.set('qr:1', {'code': 'abc'}, ttl=60)
        >>> await store.get('qr:1')
        {'code': 'abc'}
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[Dict[str, Any], Optional[float]]] = {}

    def __len__(self) -> int:
        self._purge()
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        self._purge()
        return key in self._data

    def _purge(self) -> None:
        now = self._clock()
        expired = [k for k, (_, exp) in self._data.items() if exp is not None and exp <= now]
        for key in expired:
            del self._data[key]

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        self._purge()
        entry = self._data.get(key)
        return copy.deepcopy(entry[0]) if entry else None

    async def set(self, key: str, value: Dict[str, Any], ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        self._data[key] = (copy.deepcopy(value), expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class MemoryCredentialStore:
    """In-memory credential store."""

    def __init__(self):
        self._credentials: Dict[str, AccountCredential] = {}

    async def get(self, remote_user_id: str) -> Optional[AccountCredential]:
        return self._credentials.get(remote_user_id)

    async def save(self, credential: AccountCredential) -> None:
        credential.validate()
        self._credentials[credential.remote_user_id] = credential

    async def delete(self, remote_user_id: str) -> None:
        self._credentials.pop(remote_user_id, None)

    async def list(self) -> List[AccountCredential]:
        return list(self._credentials.values())
