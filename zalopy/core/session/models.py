"""
Data models for transient login state.
"""
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from ..account import CookieJar


@dataclass
class QRLoginSession:
    """
    State of one QR login handshake, kept in the SessionStore.

    Deleted once the handshake reaches a terminal state.
    """
    code: str
    version: str
    cookies: CookieJar = field(default_factory=CookieJar)
    created_at: float = field(default_factory=time.time)
    device_id: str = ''
    avatar_url: str = ''
    display_name: str = ''
    scanned: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            'code': self.code,
            'version': self.version,
            'cookies': self.cookies.to_list(),
            'created_at': self.created_at,
            'device_id': self.device_id,
            'avatar_url': self.avatar_url,
            'display_name': self.display_name,
            'scanned': self.scanned,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QRLoginSession':
        """Create from dictionary."""
        return cls(
            code=data['code'],
            version=data.get('version', ''),
            cookies=CookieJar.from_list(data.get('cookies') or []),
            created_at=float(data.get('created_at', time.time())),
            device_id=data.get('device_id', ''),
            avatar_url=data.get('avatar_url', ''),
            display_name=data.get('display_name', ''),
            scanned=bool(data.get('scanned', False)),
        )
