"""
Outbound message client.

Sends text, attachments and friend operations through signed, encrypted
calls. Public methods never raise platform errors; they return a
:class:`SendResult` carrying either a message id or a typed failure.
"""
from typing import Any, Callable, List, Optional, Sequence

from . import payloads
from .models import Mention, OutboundSendRequest, SendResult
from ..account import AccountCredential
from ..api import endpoints
from ..api.async_client import AsyncAPIClient
from ..api.config import APIConfig
from ..api.signed import SignedRequester
from ..exceptions import AuthExpiredError, CryptoError, ZaloException
from ..logging import get_logger
from ..upload import OutboundAttachment, UploadCoordinator, UploadProgress

logger = get_logger('zalopy.messages')


def extract_message_id(data: Any) -> Optional[str]:
    """Platform message id from a send response, if present."""
    if not isinstance(data, dict):
        return None
    for key in ('msgId', 'msg_id', 'messageId'):
        value = data.get(key)
        if value not in (None, ''):
            return str(value)
    return None


class MessageClient:
    """
    Sends messages on behalf of logged-in accounts.

    The client holds no per-account state; concurrent calls for one account
    are serialised on the credential's cookie lock by the transport.

    Example:
        >>> client = MessageClient(api_client)
        >>> result = await client.send_text(credential, '12345', False, 'hello')
        >>> result.platform_message_id
        '7001'
    """

    def __init__(
        self,
        api_client: AsyncAPIClient,
        config: Optional[APIConfig] = None,
        uploader: Optional[UploadCoordinator] = None,
        progress_callback: Optional[Callable[[UploadProgress], None]] = None
    ):
        """
        Initialize message client.

        Args:
            api_client: HTTP client
            config: Client configuration (defaults to the API client's)
            uploader: Upload coordinator (created on demand)
            progress_callback: Optional upload progress callback
        """
        self._config = config or api_client.config
        self._requester = SignedRequester(api_client)
        self._uploader = uploader or UploadCoordinator(
            self._requester, progress_callback=progress_callback
        )

    @property
    def requester(self) -> SignedRequester:
        return self._requester

    def set_progress_callback(self, callback: Optional[Callable[[UploadProgress], None]]) -> None:
        """Report chunk progress of subsequent uploads to ``callback``."""
        self._uploader.set_progress_callback(callback)

    def _failure(self, credential: AccountCredential, action: str, exc: BaseException) -> SendResult:
        if isinstance(exc, (CryptoError, AuthExpiredError)):
            credential.mark_auth_error()
            logger.error(
                f"[{credential.account_id}] {action} failed, credential marked {credential.status.value}: {exc}"
            )
        else:
            logger.error(f"[{credential.account_id}] {action} failed: {exc}")
        return SendResult.failure(exc)

    async def send_text(
        self,
        credential: AccountCredential,
        target_id: str,
        is_group: bool,
        text: str,
        mention: Optional[Mention] = None
    ) -> SendResult:
        """
        Send a text message.

        Args:
            credential: Sending account
            target_id: Recipient user id or group id
            is_group: Whether the target is a group
            text: Message text
            mention: Optional @mention (groups only)

        Returns:
            SendResult with the platform message id
        """
        if not text or not text.strip():
            return SendResult.invalid("Message text is empty")
        if mention is not None and not is_group:
            return SendResult.invalid("Mentions are only supported in group conversations")

        if mention is not None:
            url = endpoints.SEND_GROUP_MENTION
        else:
            url = endpoints.SEND_GROUP_MESSAGE if is_group else endpoints.SEND_MESSAGE

        params = payloads.build_text_params(credential, target_id, is_group, text, mention)
        logger.info(f"[{credential.account_id}] Sending text to {target_id}")

        try:
            data = await self._requester.post(credential, url, params)
        except ZaloException as e:
            return self._failure(credential, 'Send text', e)

        return SendResult.ok(extract_message_id(data), data)

    async def send_attachment(
        self,
        credential: AccountCredential,
        target_id: str,
        is_group: bool,
        files: Sequence[OutboundAttachment],
        text: Optional[str] = None
    ) -> SendResult:
        """
        Upload files and attach them to a conversation.

        Each file is uploaded in 512 KiB chunks, then referenced by one send
        call. Several files share a gallery layout; the caption is only sent
        with a single file, otherwise it follows as a separate text message.

        Args:
            credential: Sending account
            target_id: Recipient user id or group id
            is_group: Whether the target is a group
            files: Attachments (1 to 50, each 1 byte to 1 GiB)
            text: Optional caption

        Returns:
            SendResult with the id of the last sent message and, in ``data``,
            every message id and upload
        """
        files = list(files)
        try:
            self._uploader.validator.validate_batch(files)
        except (ZaloException, OSError) as e:
            return self._failure(credential, 'Send attachment', e)

        logger.info(
            f"[{credential.account_id}] Sending {len(files)} file(s) to {target_id}"
        )

        uploads = []
        message_ids: List[Optional[str]] = []
        try:
            for attachment in files:
                uploads.append(
                    await self._uploader.upload(credential, target_id, is_group, attachment)
                )

            single = len(uploads) == 1
            layout = None if single else payloads.GalleryLayout.create(len(uploads))

            for index, upload in enumerate(uploads):
                base = endpoints.file_base(is_group)
                if upload.is_photo:
                    url = base + endpoints.PHOTO_SEND
                    params = payloads.build_photo_params(
                        credential,
                        target_id,
                        is_group,
                        upload,
                        caption=text if single else None,
                        layout=layout.fields(index) if layout else None,
                    )
                else:
                    url = base + endpoints.FILE_SEND
                    params = payloads.build_file_params(credential, target_id, is_group, upload)

                data = await self._requester.post(credential, url, params)
                message_ids.append(extract_message_id(data))
        except (ZaloException, OSError) as e:
            return self._failure(credential, 'Send attachment', e)

        result_data = {
            'message_ids': message_ids,
            'uploads': [upload.to_dict() for upload in uploads],
        }

        caption_sent = single and uploads[0].is_photo
        if text and text.strip() and not caption_sent:
            caption = await self.send_text(credential, target_id, is_group, text)
            if not caption.success:
                return caption
            message_ids.append(caption.platform_message_id)

        return SendResult.ok(message_ids[-1], result_data)

    async def send(self, credential: AccountCredential, request: OutboundSendRequest) -> SendResult:
        """Send text or attachments depending on the request."""
        if request.has_attachments:
            return await self.send_attachment(
                credential,
                request.target_id,
                request.is_group,
                request.attachments,
                text=request.text or None,
            )
        return await self.send_text(
            credential, request.target_id, request.is_group, request.text, request.mention
        )

    async def undo_message(
        self,
        credential: AccountCredential,
        target_id: str,
        is_group: bool,
        msg_id: str,
        cli_msg_id: str
    ) -> SendResult:
        """Recall a previously sent message."""
        url = endpoints.UNDO_GROUP_MESSAGE if is_group else endpoints.UNDO_MESSAGE
        params = payloads.build_undo_params(credential, target_id, is_group, msg_id, cli_msg_id)
        try:
            data = await self._requester.post(credential, url, params)
        except ZaloException as e:
            return self._failure(credential, 'Undo message', e)
        return SendResult.ok(str(msg_id), data)

    # Friends

    async def check_friend_status(self, credential: AccountCredential, friend_id: str) -> SendResult:
        """Query the friendship/request status with another user."""
        params = payloads.build_friend_status_params(credential, friend_id)
        try:
            data = await self._requester.post(credential, endpoints.FRIEND_STATUS, params)
        except ZaloException as e:
            return self._failure(credential, 'Friend status', e)
        return SendResult.ok(data=data)

    async def send_friend_request(
        self,
        credential: AccountCredential,
        friend_id: str,
        message: str = ''
    ) -> SendResult:
        """Send a friend request with an optional greeting."""
        params = payloads.build_friend_request_params(credential, friend_id, message)
        try:
            data = await self._requester.post(credential, endpoints.FRIEND_SEND_REQUEST, params)
        except ZaloException as e:
            return self._failure(credential, 'Friend request', e)
        return SendResult.ok(data=data)

    async def accept_friend_request(self, credential: AccountCredential, friend_id: str) -> SendResult:
        """Accept a pending friend request."""
        params = payloads.build_friend_accept_params(credential, friend_id)
        try:
            data = await self._requester.post(credential, endpoints.FRIEND_ACCEPT, params)
        except ZaloException as e:
            return self._failure(credential, 'Accept friend', e)
        return SendResult.ok(data=data)
