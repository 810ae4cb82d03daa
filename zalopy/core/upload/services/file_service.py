"""
File validation and reading services.

Single Responsibility: Each class handles one specific task.
"""
from pathlib import Path
from typing import Optional, Sequence

import aiofiles

from ..models import OutboundAttachment
from ...exceptions import LimitExceededError
from ...logging import get_logger

MAX_FILE_SIZE = 1024 * 1024 * 1024
MAX_FILES = 50


class FileValidator:
    """
    Validates attachments before any network call.

    Responsibilities:
    - Enforce the per-call file count ceiling
    - Reject empty files and files above the size ceiling
    - Check that on-disk files still exist
    """

    def __init__(self, max_file_size: int = MAX_FILE_SIZE, max_files: int = MAX_FILES):
        self.max_file_size = max_file_size
        self.max_files = max_files

    def validate(self, attachment: OutboundAttachment) -> int:
        """
        Validate one attachment.

        Returns:
            File size in bytes

        Raises:
            FileNotFoundError: If an on-disk file is missing
            LimitExceededError: If the file is empty or too large
        """
        size = attachment.size
        if attachment.path is not None and attachment.data is None:
            path = attachment.path
            if not path.is_file():
                raise FileNotFoundError(f"File not found: {path}")
            size = path.stat().st_size

        if size == 0:
            raise LimitExceededError(f"Cannot upload empty file: {attachment.filename}")

        if size > self.max_file_size:
            raise LimitExceededError(
                f"File {attachment.filename} is {size} bytes, maximum is {self.max_file_size}"
            )

        return size

    def validate_batch(self, attachments: Sequence[OutboundAttachment]) -> int:
        """
        Validate every attachment of one send call.

        Returns:
            Total size in bytes

        Raises:
            LimitExceededError: If there are no files, too many files, or one is out of bounds
        """
        if not attachments:
            raise LimitExceededError("No files to send")

        if len(attachments) > self.max_files:
            raise LimitExceededError(
                f"{len(attachments)} files in one call, maximum is {self.max_files}"
            )

        return sum(self.validate(attachment) for attachment in attachments)


class AsyncFileReader:
    """
    Asynchronous chunk reader.

    Uses aiofiles for on-disk attachments and keeps the handle open for the
    duration of an upload; in-memory attachments are sliced directly.
    """

    def __init__(self):
        """Initialize file reader."""
        self._logger = get_logger('zalopy.upload')
        self._file_handle = None
        self._current_file_path: Optional[Path] = None

    async def open(self, attachment: OutboundAttachment) -> None:
        """
        Open an attachment for reading. Call this before reading chunks.

        Args:
            attachment: Attachment to open
        """
        if attachment.data is not None:
            return

        if self._file_handle is not None and self._current_file_path == attachment.path:
            return

        if self._file_handle is not None:
            await self.close()

        self._file_handle = await aiofiles.open(attachment.path, 'rb')
        self._current_file_path = attachment.path

    async def close(self) -> None:
        """Close the currently open file."""
        if self._file_handle is not None:
            await self._file_handle.close()
            self._file_handle = None
            self._current_file_path = None

    async def read_chunk(
        self,
        attachment: OutboundAttachment,
        start: int,
        end: int
    ) -> Optional[bytes]:
        """
        Read a chunk of an attachment.

        Args:
            attachment: Attachment to read
            start: Start position in bytes
            end: End position in bytes

        Returns:
            Chunk data or None if reading failed
        """
        if attachment.data is not None:
            data = attachment.data[start:end]
            return data if data else None

        try:
            chunk_size = end - start

            if self._file_handle is not None and self._current_file_path == attachment.path:
                await self._file_handle.seek(start)
                data = await self._file_handle.read(chunk_size)
            else:
                async with aiofiles.open(attachment.path, 'rb') as f:
                    await f.seek(start)
                    data = await f.read(chunk_size)

            if data:
                self._logger.debug(f"Read chunk: {start}-{end} ({len(data)} bytes)")
            return data if data else None
        except OSError as e:
            self._logger.error(f"Failed to read chunk {start}-{end} of {attachment.filename}: {e}")
            return None
