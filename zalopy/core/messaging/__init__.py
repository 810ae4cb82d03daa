"""Outbound messages, attachments and friend operations."""
from .models import Mention, OutboundSendRequest, SendResult, INVALID_REQUEST
from .message_client import MessageClient, extract_message_id
from .payloads import GalleryLayout
from ..upload import OutboundAttachment, MimeClass

__all__ = [
    'Mention',
    'OutboundSendRequest',
    'OutboundAttachment',
    'MimeClass',
    'SendResult',
    'INVALID_REQUEST',
    'MessageClient',
    'GalleryLayout',
    'extract_message_id',
]
