"""
Upload coordinator.

Orchestrates the chunked upload of one attachment using injected
dependencies: chunking strategy, file reader and validator.
"""
import hashlib
import io
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from PIL import Image

from .models import ChunkInfo, OutboundAttachment, UploadProgress, UploadResult
from .protocols import ChunkingStrategy, FileReaderProtocol
from .services import AsyncFileReader, ChunkUploader, FileValidator, build_upload_params
from .strategies import FixedSizeChunkingStrategy
from ..account import AccountCredential
from ..api import endpoints
from ..api.signed import SignedRequester
from ..exceptions import ProtocolError
from ..logging import get_logger

logger = get_logger('zalopy.upload')


def new_client_id() -> int:
    """Client-generated id: the current time in milliseconds."""
    return int(time.time() * 1000)


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ''):
            return value
    return None


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def probe_image_size(attachment: OutboundAttachment) -> Tuple[Optional[int], Optional[int]]:
    """Read image dimensions locally; (None, None) if the file is not a readable image."""
    try:
        source = io.BytesIO(attachment.data) if attachment.data is not None else attachment.path
        with Image.open(source) as image:
            return image.size
    except OSError as e:
        logger.debug(f"Could not read dimensions of {attachment.filename}: {e}")
        return None, None


class UploadCoordinator:
    """
    Coordinates the chunked upload of one attachment.

    Chunks are read and sent sequentially with 1-based ids; the MD5 checksum
    is computed while streaming. The chunk answered with ``finished == 1``
    carries the metadata later referenced by the send call.
    """

    def __init__(
        self,
        requester: SignedRequester,
        chunking_strategy: Optional[ChunkingStrategy] = None,
        file_reader: Optional[FileReaderProtocol] = None,
        validator: Optional[FileValidator] = None,
        progress_callback: Optional[Callable[[UploadProgress], None]] = None
    ):
        """
        Initialize upload coordinator.

        Args:
            requester: Signed request transport
            chunking_strategy: Strategy for chunking files (512 KiB fixed by default)
            file_reader: Attachment reader implementation
            validator: Size and count limits
            progress_callback: Optional callback for progress updates
        """
        self._requester = requester
        self._chunking = chunking_strategy or FixedSizeChunkingStrategy()
        self._file_reader = file_reader or AsyncFileReader()
        self._validator = validator or FileValidator()
        self._progress_callback = progress_callback

    @property
    def validator(self) -> FileValidator:
        return self._validator

    def set_progress_callback(self, callback: Optional[Callable[[UploadProgress], None]]) -> None:
        self._progress_callback = callback

    def upload_url(self, attachment: OutboundAttachment, is_group: bool) -> str:
        endpoint = endpoints.PHOTO_UPLOAD if attachment.is_image else endpoints.FILE_UPLOAD
        return endpoints.file_base(is_group) + endpoint

    async def upload(
        self,
        credential: AccountCredential,
        target_id: str,
        is_group: bool,
        attachment: OutboundAttachment
    ) -> UploadResult:
        """
        Upload one attachment.

        Args:
            credential: Account uploading the file
            target_id: Recipient user or group id
            is_group: Whether the target is a group
            attachment: File to upload

        Returns:
            Upload metadata

        Raises:
            LimitExceededError: If the file is empty or too large
            ProtocolError: If no chunk reports completion
            OSError: If the file cannot be read
        """
        file_size = self._validator.validate(attachment)
        chunks = [
            ChunkInfo(index, start, end)
            for index, (start, end) in enumerate(self._chunking.calculate_chunks(file_size), 1)
        ]
        total = len(chunks)
        client_id = new_client_id()

        logger.info(
            f"Starting upload: {attachment.filename} "
            f"({file_size / (1024 * 1024):.2f} MB, {total} chunks)"
        )

        uploader = ChunkUploader(
            self._requester,
            credential,
            self.upload_url(attachment, is_group),
            is_group,
            attachment.filename,
        )
        progress = UploadProgress(
            filename=attachment.filename,
            total_chunks=total,
            total_bytes=file_size,
        )
        checksum = hashlib.md5()

        await self._file_reader.open(attachment)
        try:
            for chunk in chunks:
                data = await self._file_reader.read_chunk(attachment, chunk.start, chunk.end)
                if not data:
                    raise OSError(f"Failed to read chunk {chunk.index} of {attachment.filename}")

                checksum.update(data)
                params = build_upload_params(
                    credential,
                    target_id,
                    is_group,
                    attachment,
                    total,
                    chunk.index,
                    client_id,
                    total_size=file_size,
                )
                await uploader.upload_chunk(chunk.index, params, data)

                progress.uploaded_chunks += 1
                progress.uploaded_bytes += len(data)
                if self._progress_callback:
                    self._progress_callback(progress)
        finally:
            await self._file_reader.close()

        finished = uploader.get_finished_response()
        if finished is None:
            raise ProtocolError(f"Upload of {attachment.filename} never reported completion")

        result = self._build_result(attachment, file_size, client_id, checksum.hexdigest(), finished)
        logger.info(f"Upload complete: {attachment.filename}")
        return result

    def _build_result(
        self,
        attachment: OutboundAttachment,
        file_size: int,
        client_id: int,
        checksum: str,
        finished: Dict[str, Any]
    ) -> UploadResult:
        meta = finished.get('data')
        if not isinstance(meta, dict):
            meta = finished

        if attachment.is_image:
            photo_id = _pick(meta, 'photo_id', 'photoId')
            if photo_id is None:
                raise ProtocolError(f"Photo upload of {attachment.filename} returned no photo id")

            width = _as_int(_pick(meta, 'width'))
            height = _as_int(_pick(meta, 'height'))
            if width is None or height is None:
                width, height = probe_image_size(attachment)

            return UploadResult(
                filename=attachment.filename,
                total_size=file_size,
                mime_class=attachment.mime_class,
                client_id=client_id,
                checksum=checksum,
                photo_id=str(photo_id),
                width=width,
                height=height,
                hd_url=_pick(meta, 'hd_url', 'hdUrl'),
                hd_size=_as_int(_pick(meta, 'hd_size', 'hdSize')),
                normal_url=_pick(meta, 'normal_url', 'normalUrl'),
                thumb_url=_pick(meta, 'thumb_url', 'thumbUrl'),
            )

        file_id = _pick(meta, 'file_id', 'fileId')
        if file_id is None:
            raise ProtocolError(f"File upload of {attachment.filename} returned no file id")

        return UploadResult(
            filename=attachment.filename,
            total_size=file_size,
            mime_class=attachment.mime_class,
            client_id=client_id,
            checksum=checksum,
            file_id=str(file_id),
            file_url=_pick(meta, 'file_url', 'fileUrl'),
        )
