"""
Real-time event models.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class EventKind(str, Enum):
    """Classified kinds of inbound real-time events."""
    CHAT_MESSAGE = 'chat_message'
    TYPING = 'typing'
    FRIEND_ACTION = 'friend_action'
    FILE_READY = 'file_ready'


class ConnectionEvent(str, Enum):
    """Status notifications emitted by a connection supervisor."""
    CONNECTED = 'connected'
    DISCONNECTED = 'disconnected'
    RECONNECT_SCHEDULED = 'reconnect_scheduled'
    AUTH_ERROR = 'auth_error'
    STOPPED = 'stopped'


@dataclass(frozen=True)
class InboundEventEnvelope:
    """
    One classified inbound event.

    ``payload`` holds the kind-specific fields:

    - chat_message: content, message_type, display_name, msg_id, is_self
    - typing: gid, uid
    - friend_action: action, from_uid, to_uid, message
    - file_ready: file_id
    """
    kind: EventKind
    account_id: str
    conversation_id: str
    sender_id: str
    timestamp: int
    is_group: bool = False
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'account_id': self.account_id,
            'conversation_id': self.conversation_id,
            'sender_id': self.sender_id,
            'timestamp': self.timestamp,
            'is_group': self.is_group,
            'payload': dict(self.payload),
        }


@dataclass(frozen=True)
class StatusEvent:
    """Connection status change for one account."""
    account_id: str
    status: ConnectionEvent
    detail: Dict[str, Any] = field(default_factory=dict)
