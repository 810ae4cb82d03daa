"""Pytest fixtures for zalopy tests."""
import base64
import json

import pytest

from zalopy.core.account import AccountCredential, ConnectionStatus, CookieJar
from zalopy.core.api import APIResponse
from zalopy.core.crypto import encrypt_payload


@pytest.fixture
def secret_key():
    """Returns a base64 per-account secret key (AES-256)."""
    return base64.b64encode(bytes(range(32))).decode('ascii')


@pytest.fixture
def frame_key():
    """Returns a base64 real-time cipher key."""
    return base64.b64encode(b'frame-key-16byte').decode('ascii')


@pytest.fixture
def cookie_jar():
    """Returns a cookie jar as captured after a QR login."""
    jar = CookieJar()
    jar.set('zpsid', 'sid-1', domain='.zalo.me')
    jar.set('zpw_sek', 'sek-1', domain='.chat.zalo.me')
    return jar


@pytest.fixture
def credential(secret_key, cookie_jar):
    """Returns an active credential."""
    return AccountCredential(
        device_id='device-1',
        remote_user_id='1001',
        secret_key=secret_key,
        cookies=cookie_jar,
        display_name='Tester',
        phone_number='0901234567',
        status=ConnectionStatus.ACTIVE,
    )


@pytest.fixture
def encrypted(secret_key):
    """Encrypts a JSON payload the way the platform encrypts response data."""
    def _encrypt(payload):
        return encrypt_payload(secret_key, json.dumps(payload))
    return _encrypt


@pytest.fixture
def api_response():
    """Builds a buffered APIResponse."""
    def _make(body, status=200, url='https://chat.zalo.test/api'):
        text = body if isinstance(body, str) else json.dumps(body)
        return APIResponse(status=status, text=text, url=url)
    return _make
