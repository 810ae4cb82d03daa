"""
Storage protocols.

The host application backs both protocols with whatever storage it likes;
zalopy ships memory and SQLite implementations.
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from ..account import AccountCredential


@runtime_checkable
class SessionStore(Protocol):
    """TTL key/value store for transient QR login state."""

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Load a value.

        Returns:
            The stored value, or None if missing or expired
        """
        ...

    async def set(self, key: str, value: Dict[str, Any], ttl: Optional[float] = None) -> None:
        """
        Store a value.

        Args:
            key: Entry key
            value: JSON-serialisable value
            ttl: Lifetime in seconds (None keeps it until deleted)
        """
        ...

    async def delete(self, key: str) -> None:
        """Delete a value. Missing keys are ignored."""
        ...


@runtime_checkable
class CredentialStore(Protocol):
    """Durable storage for account credentials, keyed by remote user id."""

    async def get(self, remote_user_id: str) -> Optional[AccountCredential]:
        ...

    async def save(self, credential: AccountCredential) -> None:
        ...

    async def delete(self, remote_user_id: str) -> None:
        ...

    async def list(self) -> List[AccountCredential]:
        ...
