"""
Chunk upload service.

Handles sending individual chunks of one attachment to the file API.
"""
import time
from typing import Any, Dict, Mapping, Optional

from ..models import OutboundAttachment
from ...account import AccountCredential
from ...api.signed import SignedRequester
from ...logging import get_logger

GROUP_UPLOAD_TYPE = '11'
USER_UPLOAD_TYPE = '2'


def build_upload_params(
    credential: AccountCredential,
    target_id: str,
    is_group: bool,
    attachment: OutboundAttachment,
    total_chunks: int,
    chunk_id: int,
    client_id: int,
    total_size: Optional[int] = None
) -> Dict[str, Any]:
    """Plain parameters of one chunk upload call."""
    return {
        'total_chunk': total_chunks,
        'file_name': attachment.filename,
        'client_id': client_id,
        'total_size': attachment.size if total_size is None else total_size,
        'imei': credential.device_id,
        'chunk_id': chunk_id,
        'toid': None if is_group else target_id,
        'grid': target_id if is_group else None,
        'is_e2ee': 0,
        'jxl': 1 if attachment.is_image else 0,
    }


class ChunkUploader:
    """
    Uploads the chunks of one attachment.

    Responsibilities:
    - Send chunks as multipart with encrypted query params
    - Track the ``finished`` response carrying the upload metadata
    """

    def __init__(
        self,
        requester: SignedRequester,
        credential: AccountCredential,
        url: str,
        is_group: bool,
        filename: str
    ):
        """
        Initialize chunk uploader.

        Args:
            requester: Signed request transport
            credential: Account uploading the file
            url: Upload endpoint
            is_group: Whether the target is a group
            filename: File name sent with each chunk
        """
        self._requester = requester
        self._credential = credential
        self._url = url
        self._upload_type = GROUP_UPLOAD_TYPE if is_group else USER_UPLOAD_TYPE
        self._filename = filename
        self._finished: Optional[Dict[str, Any]] = None
        self._logger = get_logger('zalopy.upload')

    @property
    def upload_url(self) -> str:
        """Returns the upload URL."""
        return self._url

    @property
    def upload_type(self) -> str:
        return self._upload_type

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

        Raises:
            ValueError: If chunk is empty
        """
        if not data:
            raise ValueError(f"Cannot upload empty chunk {chunk_id}")

        chunk_size_kb = len(data) / 1024
        upload_start = time.time()
        self._logger.debug(f"Uploading chunk {chunk_id} of {self._filename} ({chunk_size_kb:.1f} KB)")

        result = await self._requester.upload(
            self._credential,
            self._url,
            params,
            data,
            self._filename,
            self._upload_type,
        )

        upload_time = time.time() - upload_start
        self._logger.debug(f"Chunk {chunk_id} uploaded in {upload_time:.2f}s")
        self._process_response(result, chunk_id)
        return result

    def _process_response(self, result: Any, chunk_id: int) -> None:
        # intermediate chunks answer without the finished flag
        if isinstance(result, dict) and str(result.get('finished', '')) == '1':
            self._finished = result
            self._logger.debug(f"Upload of {self._filename} finished at chunk {chunk_id}")

    def get_finished_response(self) -> Optional[Dict[str, Any]]:
        """
        Get the response that carried ``finished == 1``.

        Returns:
            The response or None if the upload has not finished
        """
        return self._finished
