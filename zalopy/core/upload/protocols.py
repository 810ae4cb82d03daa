"""
Protocol definitions for upload module.

Defines interfaces (protocols) for dependency injection and strategy pattern.
"""
from typing import Any, List, Mapping, Optional, Protocol, Tuple

from .models import OutboundAttachment


class ChunkingStrategy(Protocol):
    """
    Protocol for file chunking strategies.

    Allows different chunking algorithms to be plugged in.
    """

    def calculate_chunks(self, file_size: int) -> List[Tuple[int, int]]:
        """
        Calculate chunk boundaries for a file.

        Args:
            file_size: Total file size in bytes

        Returns:
            List of (start, end) tuples representing chunk boundaries
        """
        ...


class FileReaderProtocol(Protocol):
    """Protocol for attachment reading operations."""

    async def open(self, attachment: OutboundAttachment) -> None:
        ...

    async def close(self) -> None:
        ...

    async def read_chunk(
        self,
        attachment: OutboundAttachment,
        start: int,
        end: int
    ) -> Optional[bytes]:
        """
        Read a chunk of an attachment.

        Returns:
            Chunk data or None if reading failed
        """
        ...


class ChunkUploaderProtocol(Protocol):
    """Protocol for sending one chunk to the platform."""

    async def upload_chunk(
        self,
        chunk_id: int,
        params: Mapping[str, Any],
        data: bytes
    ) -> Any:
        """
        Upload a single chunk.

        Args:
            chunk_id: 1-based chunk id
            params: Plain upload parameters
            data: Chunk bytes

        Returns:
            Decrypted platform response
        """
        ...
