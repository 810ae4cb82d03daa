"""
Account credential model.

An :class:`AccountCredential` is created at the end of a successful QR
login and owned by the host afterwards. The connection manager only bumps
``last_activity_at`` or flips the status to ``auth_error``/``disabled``.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .cookies import CookieJar


class ConnectionStatus(str, Enum):
    """Lifecycle state of an account credential."""
    PENDING_LOGIN = 'pending_login'
    ACTIVE = 'active'
    AUTH_ERROR = 'auth_error'
    DISABLED = 'disabled'


@dataclass
class AccountCredential:
    """
    Authenticated session bundle for one remote platform account.

    While ``status`` is ``active`` both ``secret_key`` and ``cookies`` are
    non-empty.
    """
    device_id: str
    remote_user_id: str
    secret_key: str
    cookies: CookieJar = field(default_factory=CookieJar)
    display_name: str = ''
    phone_number: str = ''
    avatar_url: str = ''
    api_type: int = 30
    api_version: int = 655
    language: str = 'vi'
    status: ConnectionStatus = ConnectionStatus.PENDING_LOGIN
    last_activity_at: Optional[datetime] = None
    _cookie_lock: Optional[asyncio.Lock] = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def account_id(self) -> str:
        return self.remote_user_id

    @property
    def cookie_lock(self) -> asyncio.Lock:
        """Per-account lock serialising read-modify-write of the cookie jar."""
        if self._cookie_lock is None:
            self._cookie_lock = asyncio.Lock()
        return self._cookie_lock

    def is_active(self) -> bool:
        return self.status == ConnectionStatus.ACTIVE

    def validate(self) -> None:
        """
        Check the credential invariants.

        Raises:
            ValueError: If an active credential lacks its secret key or cookies
        """
        if not self.remote_user_id:
            raise ValueError("Credential has no remote user id")
        if self.is_active() and (not self.secret_key or not self.cookies):
            raise ValueError(
                f"Active credential {self.remote_user_id} needs a secret key and cookies"
            )

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_activity_at = now or datetime.now()

    def activate(self) -> None:
        self.status = ConnectionStatus.ACTIVE
        self.validate()

    def mark_auth_error(self) -> None:
        if self.status != ConnectionStatus.DISABLED:
            self.status = ConnectionStatus.AUTH_ERROR

    def disable(self) -> None:
        self.status = ConnectionStatus.DISABLED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            'device_id': self.device_id,
            'remote_user_id': self.remote_user_id,
            'secret_key': self.secret_key,
            'cookies': self.cookies.to_list(),
            'display_name': self.display_name,
            'phone_number': self.phone_number,
            'avatar_url': self.avatar_url,
            'api_type': self.api_type,
            'api_version': self.api_version,
            'language': self.language,
            'status': self.status.value,
            'last_activity_at': (
                self.last_activity_at.isoformat() if self.last_activity_at else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AccountCredential':
        """Create from dictionary."""
        last_activity = data.get('last_activity_at')
        return cls(
            device_id=data['device_id'],
            remote_user_id=data['remote_user_id'],
            secret_key=data.get('secret_key') or '',
            cookies=CookieJar.from_list(data.get('cookies') or []),
            display_name=data.get('display_name') or '',
            phone_number=data.get('phone_number') or '',
            avatar_url=data.get('avatar_url') or '',
            api_type=int(data.get('api_type', 30)),
            api_version=int(data.get('api_version', 655)),
            language=data.get('language') or 'vi',
            status=ConnectionStatus(data.get('status', ConnectionStatus.PENDING_LOGIN.value)),
            last_activity_at=datetime.fromisoformat(last_activity) if last_activity else None,
        )
