"""Tests for the signed request transport."""
import json
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from zalopy.core.api import SignedRequester, ZaloAPIError, endpoints, type_tag_for
from zalopy.core.crypto import decrypt_response
from zalopy.core.exceptions import (
    AuthExpiredError,
    CryptoError,
    ProtocolError,
    TransientNetworkError,
)


@pytest.fixture
def api_client():
    client = MagicMock()
    client.post = AsyncMock()
    return client


@pytest.fixture
def requester(api_client):
    return SignedRequester(api_client)


class TestTypeTag:
    """Test suite for type_tag_for."""

    @pytest.mark.parametrize('url,tag', [
        (endpoints.SEND_MESSAGE, 'sms'),
        (endpoints.SEND_GROUP_MESSAGE, 'sendmsg'),
        (endpoints.FILE_USER_BASE + endpoints.PHOTO_UPLOAD, 'upload'),
        (endpoints.FRIEND_SEND_REQUEST, 'sendreq'),
        ('https://x/api/a/b/?q=1', 'b'),
    ])
    def test_last_path_segment(self, url, tag):
        """Test the tag is the last path segment."""
        assert type_tag_for(url) == tag


class TestPost:
    """Test suite for SignedRequester.post."""

    @pytest.mark.asyncio
    async def test_envelope_and_decryption(self, requester, api_client, credential, encrypted, api_response):
        """Test the request envelope and the decrypted, unwrapped answer."""
        api_client.post.return_value = api_response(
            {'error_code': 0, 'data': encrypted({'error_code': 0, 'data': {'msgId': 9}})}
        )

        data = await requester.post(credential, endpoints.SEND_MESSAGE, {'toid': '42', 'skip': None})

        assert data == {'msgId': 9}
        args, kwargs = api_client.post.call_args
        assert args == (endpoints.SEND_MESSAGE,)
        assert kwargs['cookies'] is credential.cookies
        body = kwargs['json_body']
        assert body['encrypted'] == 1
        assert json.loads(decrypt_response(credential.secret_key, body['params'])) == {'toid': '42'}

    @pytest.mark.asyncio
    async def test_unwrapped_data_without_inner_wrapper(self, requester, api_client, credential, encrypted, api_response):
        """Test decrypted payloads without an inner wrapper pass through."""
        api_client.post.return_value = api_response({'error_code': 0, 'data': encrypted([1, 2])})

        assert await requester.post(credential, endpoints.SEND_MESSAGE, {}) == [1, 2]

    @pytest.mark.asyncio
    async def test_plain_object_data(self, requester, api_client, credential, api_response):
        """Test data that is already an object is not decrypted."""
        api_client.post.return_value = api_response({'error_code': 0, 'data': {'ok': True}})

        assert await requester.post(credential, endpoints.SEND_MESSAGE, {}) == {'ok': True}

    @pytest.mark.asyncio
    async def test_inner_error_code(self, requester, api_client, credential, encrypted, api_response):
        """Test errors reported inside the encrypted payload."""
        api_client.post.return_value = api_response(
            {'error_code': 0, 'data': encrypted({'error_code': 216, 'data': None, 'error_message': 'no'})}
        )

        with pytest.raises(ZaloAPIError) as exc_info:
            await requester.post(credential, endpoints.SEND_MESSAGE, {})

        assert exc_info.value.code == 216

    @pytest.mark.asyncio
    @pytest.mark.parametrize('status,error', [
        (401, AuthExpiredError),
        (403, AuthExpiredError),
        (404, ProtocolError),
        (503, TransientNetworkError),
    ])
    async def test_http_status_mapping(self, requester, api_client, credential, api_response, status, error):
        """Test HTTP failures map onto error kinds."""
        api_client.post.return_value = api_response('', status=status)

        with pytest.raises(error):
            await requester.post(credential, endpoints.SEND_MESSAGE, {})

    @pytest.mark.asyncio
    @pytest.mark.parametrize('body', ['not json', '[1]', '{"error_code": 0}'])
    async def test_malformed_bodies(self, requester, api_client, credential, api_response, body):
        """Test unexpected shapes raise ProtocolError."""
        api_client.post.return_value = api_response(body)

        with pytest.raises(ProtocolError):
            await requester.post(credential, endpoints.SEND_MESSAGE, {})

    @pytest.mark.asyncio
    async def test_bad_secret_key(self, requester, api_client, credential):
        """Test an unusable secret key fails before any request."""
        credential.secret_key = 'not-a-key'

        with pytest.raises(CryptoError):
            await requester.post(credential, endpoints.SEND_MESSAGE, {})

        api_client.post.assert_not_called()


class TestUpload:
    """Test suite for SignedRequester.upload."""

    @pytest.mark.asyncio
    async def test_multipart_chunk(self, requester, api_client, credential, encrypted, api_response):
        """Test chunks are sent as multipart with params in the query."""
        api_client.post.return_value = api_response(
            {'error_code': 0, 'data': encrypted({'error_code': 0, 'data': {'finished': 0}})}
        )

        data = await requester.upload(
            credential, endpoints.FILE_GROUP_BASE + endpoints.FILE_UPLOAD,
            {'chunk_id': 1}, b'abc', 'a.txt', '11',
        )

        assert data == {'finished': 0}
        kwargs = api_client.post.call_args.kwargs
        assert isinstance(kwargs['data'], aiohttp.FormData)
        assert kwargs['params']['type'] == '11'
        assert kwargs['params']['zpw_type'] == '30'
        plain = json.loads(decrypt_response(credential.secret_key, kwargs['params']['params']))
        assert plain == {'chunk_id': 1}
