"""Upload services module."""
from .file_service import FileValidator, AsyncFileReader, MAX_FILE_SIZE, MAX_FILES
from .chunk_service import ChunkUploader, build_upload_params

__all__ = [
    'FileValidator',
    'AsyncFileReader',
    'ChunkUploader',
    'build_upload_params',
    'MAX_FILE_SIZE',
    'MAX_FILES',
]
