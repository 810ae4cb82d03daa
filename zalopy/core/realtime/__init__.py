"""Real-time connections and inbound event classification."""
from .models import EventKind, ConnectionEvent, InboundEventEnvelope, StatusEvent
from .classifier import classify_payload, message_content, parse_typing_target
from .connection_manager import (
    ConnectionManager,
    ConnectionRegistry,
    ConnectionSupervisor,
    NORMAL_CLOSURE,
)

__all__ = [
    'EventKind',
    'ConnectionEvent',
    'InboundEventEnvelope',
    'StatusEvent',
    'classify_payload',
    'message_content',
    'parse_typing_target',
    'ConnectionManager',
    'ConnectionRegistry',
    'ConnectionSupervisor',
    'NORMAL_CLOSURE',
]
