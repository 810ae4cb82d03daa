"""Outbound request and result models."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..upload.models import OutboundAttachment

INVALID_REQUEST = 'invalid_request'
IO_ERROR = 'io'


@dataclass(frozen=True)
class Mention:
    """
    An @mention inside a group message.

    ``uid == '-1'`` mentions everyone. ``length`` defaults to the rest of
    the text after ``pos``.
    """
    uid: str
    pos: int = 0
    length: Optional[int] = None

    @property
    def mentions_all(self) -> bool:
        return self.uid == '-1'

    def to_dict(self, text: str = '') -> Dict[str, Any]:
        length = self.length if self.length is not None else max(len(text) - self.pos, 0)
        return {
            'pos': self.pos,
            'len': length,
            'uid': self.uid,
            'type': 1 if self.mentions_all else 0,
        }


@dataclass
class OutboundSendRequest:
    """
    What the host asks to send.

    Attributes:
        target_id: Recipient user id or group id
        is_group: Whether ``target_id`` is a group
        text: Message text, or caption for a single attachment
        attachments: Files to upload and send
        mention: Optional @mention (groups only)
    """
    target_id: str
    is_group: bool = False
    text: str = ''
    attachments: List[OutboundAttachment] = field(default_factory=list)
    mention: Optional[Mention] = None

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachments)


@dataclass
class SendResult:
    """Outcome of an outbound call: a platform message id or a typed failure."""
    success: bool
    platform_message_id: Optional[str] = None
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def ok(cls, platform_message_id: Optional[str] = None, data: Any = None) -> 'SendResult':
        return cls(success=True, platform_message_id=platform_message_id, data=data)

    @classmethod
    def failure(cls, exc: BaseException) -> 'SendResult':
        """Build a failed result from an exception, keeping its ``kind``."""
        kind = getattr(exc, 'kind', None)
        if kind is None:
            kind = IO_ERROR if isinstance(exc, OSError) else 'error'
        return cls(success=False, error=str(exc), error_kind=kind)

    @classmethod
    def invalid(cls, message: str) -> 'SendResult':
        return cls(success=False, error=message, error_kind=INVALID_REQUEST)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'platform_message_id': self.platform_message_id,
            'data': self.data,
            'error': self.error,
            'error_kind': self.error_kind,
        }
