"""
Chunked file uploads to the remote platform.

Files are split into fixed 512 KiB chunks, sent sequentially and assembled
server-side; the resulting metadata is attached to a conversation by the
message client.
"""
from .coordinator import UploadCoordinator, new_client_id, probe_image_size
from .models import (
    MimeClass,
    OutboundAttachment,
    ChunkInfo,
    UploadProgress,
    UploadResult,
    mime_class_for,
)
from .protocols import ChunkingStrategy, FileReaderProtocol, ChunkUploaderProtocol
from .services import (
    FileValidator,
    AsyncFileReader,
    ChunkUploader,
    build_upload_params,
    MAX_FILE_SIZE,
    MAX_FILES,
)
from .strategies import FixedSizeChunkingStrategy, CHUNK_SIZE

__all__ = [
    'UploadCoordinator',
    'new_client_id',
    'probe_image_size',
    'MimeClass',
    'OutboundAttachment',
    'ChunkInfo',
    'UploadProgress',
    'UploadResult',
    'mime_class_for',
    'ChunkingStrategy',
    'FileReaderProtocol',
    'ChunkUploaderProtocol',
    'FileValidator',
    'AsyncFileReader',
    'ChunkUploader',
    'build_upload_params',
    'MAX_FILE_SIZE',
    'MAX_FILES',
    'FixedSizeChunkingStrategy',
    'CHUNK_SIZE',
]
