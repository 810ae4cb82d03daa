"""Upload models."""
from .upload_models import (
    MimeClass,
    OutboundAttachment,
    ChunkInfo,
    UploadProgress,
    UploadResult,
    file_extension,
    mime_class_for,
)

__all__ = [
    'MimeClass',
    'OutboundAttachment',
    'ChunkInfo',
    'UploadProgress',
    'UploadResult',
    'file_extension',
    'mime_class_for',
]
