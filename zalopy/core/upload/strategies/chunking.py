"""
Chunking strategies for file uploads.

Implements Strategy Pattern for different chunking algorithms.
"""
from abc import ABC, abstractmethod
from typing import List, Tuple

CHUNK_SIZE = 512 * 1024


class BaseChunkingStrategy(ABC):
    """Abstract base class for chunking strategies."""

    @abstractmethod
    def calculate_chunks(self, file_size: int) -> List[Tuple[int, int]]:
        """Calculate chunk boundaries."""
        pass


class FixedSizeChunkingStrategy(BaseChunkingStrategy):
    """
    Fixed-size chunking.

    The platform assembles uploads from equal 512 KiB pieces; only the last
    one may be shorter.
    """

    DEFAULT_CHUNK_SIZE = CHUNK_SIZE

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize with chunk size.

        Args:
            chunk_size: Size of each chunk in bytes
        """
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self.chunk_size = chunk_size

    def count_chunks(self, file_size: int) -> int:
        return -(-file_size // self.chunk_size) if file_size > 0 else 0

    def calculate_chunks(self, file_size: int) -> List[Tuple[int, int]]:
        """
        Calculate fixed-size chunk boundaries.

        Args:
            file_size: Total file size in bytes

        Returns:
            List of (start, end) tuples
        """
        if file_size == 0:
            return []

        chunks = []
        position = 0

        while position < file_size:
            end = min(position + self.chunk_size, file_size)
            chunks.append((position, end))
            position = end

        return chunks
