"""
Data models for upload module.

Uses dataclasses for the attachment being sent, chunk bookkeeping and the
metadata the platform returns once an upload is assembled.
"""
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union


class MimeClass(str, Enum):
    """Coarse attachment class; decides the upload and send endpoints."""
    IMAGE = 'image'
    VIDEO = 'video'
    FILE = 'file'


IMAGE_EXTENSIONS = frozenset({'jpg', 'jpeg', 'png', 'gif'})
VIDEO_EXTENSIONS = frozenset({'mp4', 'avi', 'mov'})


def file_extension(filename: str) -> str:
    """Lowercase extension without the dot ('' if none)."""
    suffix = Path(filename).suffix
    return suffix[1:].lower() if suffix else ''


def mime_class_for(filename: str) -> MimeClass:
    """
    Classify a file by extension.

    Example:
        >>> mime_class_for('photo.JPG')
        <MimeClass.IMAGE: 'image'>
    """
    extension = file_extension(filename)
    if extension in IMAGE_EXTENSIONS:
        return MimeClass.IMAGE
    if extension in VIDEO_EXTENSIONS:
        return MimeClass.VIDEO
    return MimeClass.FILE


@dataclass
class OutboundAttachment:
    """
    A file to send, backed either by a path on disk or by bytes in memory.

    Attributes:
        filename: Name shown to the recipient
        size: Size in bytes
        mime_class: image, video or file
        path: File on disk
        data: In-memory content
    """
    filename: str
    size: int
    mime_class: MimeClass = MimeClass.FILE
    path: Optional[Path] = None
    data: Optional[bytes] = None

    def __post_init__(self):
        if self.path is None and self.data is None:
            raise ValueError("Attachment needs a path or data")
        if isinstance(self.path, str):
            self.path = Path(self.path)
        if not isinstance(self.mime_class, MimeClass):
            self.mime_class = MimeClass(self.mime_class)

    @property
    def extension(self) -> str:
        return file_extension(self.filename)

    @property
    def is_image(self) -> bool:
        return self.mime_class == MimeClass.IMAGE

    @classmethod
    def from_path(
        cls,
        path: Union[str, Path],
        filename: Optional[str] = None
    ) -> 'OutboundAttachment':
        """
        Create from a file on disk.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        name = filename or path.name
        return cls(
            filename=name,
            size=path.stat().st_size,
            mime_class=mime_class_for(name),
            path=path,
        )

    @classmethod
    def from_bytes(cls, data: bytes, filename: str) -> 'OutboundAttachment':
        """Create from in-memory content."""
        return cls(
            filename=filename,
            size=len(data),
            mime_class=mime_class_for(filename),
            data=data,
        )


@dataclass(frozen=True)
class ChunkInfo:
    """
    Information about a file chunk.

    Attributes:
        index: 1-based chunk id as sent to the platform
        start: Start position in bytes
        end: End position in bytes
    """
    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        """Returns chunk size."""
        return self.end - self.start


@dataclass
class UploadProgress:
    """
    Upload progress information.

    Attributes:
        filename: File being uploaded
        total_chunks: Total number of chunks
        uploaded_chunks: Number of uploaded chunks
        total_bytes: Total file size
        uploaded_bytes: Bytes uploaded so far
    """
    filename: str
    total_chunks: int
    uploaded_chunks: int = 0
    total_bytes: int = 0
    uploaded_bytes: int = 0

    @property
    def percentage(self) -> float:
        """Returns upload progress as percentage."""
        if self.total_chunks == 0:
            return 0.0
        return (self.uploaded_chunks / self.total_chunks) * 100

    @property
    def is_complete(self) -> bool:
        """Returns True if upload is complete."""
        return self.uploaded_chunks >= self.total_chunks


@dataclass(frozen=True)
class UploadResult:
    """
    Metadata of an assembled upload, referenced by the send call.

    Photos carry ``photo_id`` and dimensions; other files carry ``file_id``,
    ``file_url`` and the MD5 ``checksum`` of the content.
    """
    filename: str
    total_size: int
    mime_class: MimeClass
    client_id: int
    checksum: str
    photo_id: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    hd_url: Optional[str] = None
    hd_size: Optional[int] = None
    normal_url: Optional[str] = None
    thumb_url: Optional[str] = None
    file_id: Optional[str] = None
    file_url: Optional[str] = None

    @property
    def is_photo(self) -> bool:
        return self.mime_class == MimeClass.IMAGE

    @property
    def extension(self) -> str:
        return file_extension(self.filename)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['mime_class'] = self.mime_class.value
        return data
