"""
Signed and encrypted calls to the message, file and friend APIs.

Parameters are encrypted with the account's secret key and signed; the
response ``data`` field is decrypted with the same key. Every call holds the
account's cookie lock so concurrent calls never lose a rotated cookie.
"""
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit

import aiohttp

from . import endpoints
from .async_client import APIResponse, AsyncAPIClient, strip_query
from .errors import ZaloAPIError
from ..account import AccountCredential
from ..crypto import decrypt_response_json, encrypt_request_params
from ..exceptions import AuthExpiredError, ProtocolError, TransientNetworkError
from ..logging import get_logger

logger = get_logger('zalopy.api')

CHAT_HEADERS = {
    'Origin': endpoints.WEBSOCKET_ORIGIN,
    'Referer': endpoints.CHAT_CONTINUE,
}


def type_tag_for(url: str) -> str:
    """Signature type tag of an endpoint: the last segment of its path."""
    path = urlsplit(url).path.rstrip('/')
    return path.rsplit('/', 1)[-1]


class SignedRequester:
    """
    Performs signed calls on behalf of an account.

    Example:
        >>> requester = SignedRequester(api_client)
        >>> data = await requester.post(credential, endpoints.SEND_MESSAGE, params)
    """

    def __init__(self, api_client: AsyncAPIClient):
        self._client = api_client

    @property
    def api_client(self) -> AsyncAPIClient:
        return self._client

    @staticmethod
    def _query(credential: AccountCredential, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        query = {
            'zpw_ver': str(credential.api_version),
            'zpw_type': str(credential.api_type),
        }
        query.update(extra or {})
        return query

    async def post(
        self,
        credential: AccountCredential,
        url: str,
        params: Mapping[str, Any],
        type_tag: Optional[str] = None
    ) -> Any:
        """
        POST a signed JSON envelope.

        Args:
            credential: Account to act as
            url: Endpoint URL
            params: Plain parameters; None values are dropped
            type_tag: Signature tag (defaults to the endpoint name)

        Returns:
            Decrypted response data

        Raises:
            ZaloAPIError: If the platform reports a non-zero error code
            ProtocolError: On an unexpected response shape
            AuthExpiredError: On HTTP 401/403
            CryptoError: If the secret key is unusable or decryption fails
            TransientNetworkError: On network failures
        """
        encrypted = encrypt_request_params(
            credential.secret_key, params, type_tag or type_tag_for(url)
        )
        body = {
            'params': encrypted.encoded_params,
            'encrypted': 1,
            'signature': encrypted.signature,
        }

        async with credential.cookie_lock:
            response = await self._client.post(
                url,
                cookies=credential.cookies,
                params=self._query(credential, {'nretry': '0'}),
                json_body=body,
                headers=CHAT_HEADERS,
            )
        return self._unwrap(credential, response)

    async def upload(
        self,
        credential: AccountCredential,
        url: str,
        params: Mapping[str, Any],
        chunk: bytes,
        filename: str,
        upload_type: str,
        type_tag: Optional[str] = None
    ) -> Any:
        """
        POST one file chunk as multipart ``chunk_content``.

        The encrypted parameters travel in the query string together with
        ``type`` (``11`` for groups, ``2`` for users).
        """
        encrypted = encrypt_request_params(
            credential.secret_key, params, type_tag or type_tag_for(url)
        )
        form = aiohttp.FormData()
        form.add_field(
            'chunk_content', chunk, filename=filename, content_type='application/octet-stream'
        )
        query = self._query(credential, {'params': encrypted.encoded_params, 'type': upload_type})

        async with credential.cookie_lock:
            response = await self._client.post(
                url,
                cookies=credential.cookies,
                params=query,
                data=form,
                headers=CHAT_HEADERS,
            )
        return self._unwrap(credential, response)

    def _unwrap(self, credential: AccountCredential, response: APIResponse) -> Any:
        url = strip_query(response.url)
        if response.status in (401, 403):
            raise AuthExpiredError(f"Session rejected by {url}: HTTP {response.status}", response.status)
        if response.status >= 500:
            raise TransientNetworkError(f"HTTP {response.status} from {url}", response.status)
        if not response.ok:
            raise ProtocolError(f"HTTP {response.status} from {url}", response.status)

        body = response.json()
        if not isinstance(body, dict):
            raise ProtocolError(f"Unexpected response from {url}: {type(body).__name__}")

        code = body.get('error_code', 0)
        if code != 0:
            raise ZaloAPIError(code, body.get('error_message') or None)

        data = body.get('data')
        if data is None:
            raise ProtocolError(f"Response from {url} has no data")

        decoded = decrypt_response_json(credential.secret_key, data) if isinstance(data, str) else data

        # decrypted payloads carry their own error_code/data wrapper
        if isinstance(decoded, dict) and 'error_code' in decoded and 'data' in decoded:
            if decoded['error_code'] != 0:
                raise ZaloAPIError(decoded['error_code'], decoded.get('error_message') or None)
            decoded = decoded['data']

        logger.debug(f"Signed call to {url} succeeded")
        return decoded
