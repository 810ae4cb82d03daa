"""
Unit tests for account models.

Tests CookieJar and AccountCredential.
"""
import asyncio
from datetime import datetime
from http.cookies import SimpleCookie

import pytest

from zalopy.core.account import AccountCredential, ConnectionStatus, Cookie, CookieJar


def _set_cookie(header: str) -> SimpleCookie:
    cookies = SimpleCookie()
    cookies.load(header)
    return cookies


class TestCookieJar:
    """Tests for CookieJar."""

    def test_header_roundtrip(self):
        """Test parsing and serialising a Cookie header."""
        jar = CookieJar.from_header("zpsid=abc; zpw_sek=def")

        assert jar.get('zpsid') == 'abc'
        assert jar.get('zpw_sek') == 'def'
        assert jar.to_header() == 'zpsid=abc; zpw_sek=def'

    def test_from_header_skips_garbage(self):
        """Test malformed header parts are ignored."""
        jar = CookieJar.from_header("a=1; junk; ; b=")

        assert jar.get('a') == '1'
        assert jar.get('b') == ''
        assert 'junk' not in jar

    def test_replace_keeps_position(self):
        """Test replacing a cookie keeps header order."""
        jar = CookieJar.from_header("a=1; b=2")
        jar.set('a', '9')

        assert jar.to_header() == 'a=9; b=2'

    def test_expired_cookies_not_sent(self):
        """Test expired cookies are left out of the header."""
        jar = CookieJar()
        jar.set('old', 'x', expires=100.0)
        jar.set('new', 'y', expires=300.0)

        assert jar.to_header(now=200.0) == 'new=y'

    def test_update_from_response_rotates_value(self, cookie_jar):
        """Test Set-Cookie replaces an existing value."""
        changed = cookie_jar.update_from_response(
            _set_cookie('zpw_sek=sek-2; Domain=.chat.zalo.me; Path=/; Secure'),
            now=1000.0,
        )

        assert changed == 1
        assert cookie_jar.get('zpw_sek') == 'sek-2'
        rotated = [c for c in cookie_jar if c.name == 'zpw_sek'][0]
        assert rotated.domain == '.chat.zalo.me'
        assert rotated.secure

    def test_update_from_response_adds_with_default_domain(self):
        """Test new cookies without a domain get the default one."""
        jar = CookieJar()
        jar.update_from_response(_set_cookie('fresh=1; Max-Age=60'), default_domain='zalo.me', now=1000.0)

        cookie = list(jar)[0]
        assert cookie.domain == 'zalo.me'
        assert cookie.expires == 1060.0

    def test_update_from_response_removes_expired(self, cookie_jar):
        """Test a Set-Cookie already in the past deletes the cookie."""
        changed = cookie_jar.update_from_response(
            _set_cookie('zpsid=gone; Max-Age=0'),
            now=1000.0,
        )

        assert changed == 1
        assert 'zpsid' not in cookie_jar

    def test_list_roundtrip(self, cookie_jar):
        """Test list serialisation keeps every attribute."""
        restored = CookieJar.from_list(cookie_jar.to_list())

        assert restored == cookie_jar
        assert len(restored) == 2

    def test_copy_is_independent(self, cookie_jar):
        """Test copies do not share cookies."""
        copy = cookie_jar.copy()
        copy.set('zpsid', 'changed')

        assert cookie_jar.get('zpsid') == 'sid-1'

    def test_cookie_from_dict_defaults(self):
        """Test missing optional fields get defaults."""
        cookie = Cookie.from_dict({'name': 'a', 'value': 1, 'expires': ''})

        assert cookie.value == '1'
        assert cookie.path == '/'
        assert cookie.expires is None


class TestAccountCredential:
    """Tests for AccountCredential."""

    def test_account_id_is_remote_user_id(self, credential):
        """Test account id."""
        assert credential.account_id == '1001'

    def test_validate_active_requires_secret_and_cookies(self, cookie_jar):
        """Test active credentials need a secret key and cookies."""
        credential = AccountCredential(
            device_id='d', remote_user_id='1', secret_key='', cookies=cookie_jar,
            status=ConnectionStatus.ACTIVE,
        )
        with pytest.raises(ValueError):
            credential.validate()

        credential.secret_key = 'key'
        credential.cookies = CookieJar()
        with pytest.raises(ValueError):
            credential.validate()

    def test_validate_pending_allows_empty_secret(self):
        """Test pending credentials may be incomplete."""
        AccountCredential(device_id='d', remote_user_id='1', secret_key='').validate()

    def test_validate_requires_remote_user_id(self):
        """Test a credential needs a remote user id."""
        with pytest.raises(ValueError):
            AccountCredential(device_id='d', remote_user_id='', secret_key='k').validate()

    def test_status_transitions(self, credential):
        """Test auth_error and disabled transitions."""
        credential.mark_auth_error()
        assert credential.status == ConnectionStatus.AUTH_ERROR
        assert not credential.is_active()

        credential.activate()
        assert credential.is_active()

        credential.disable()
        credential.mark_auth_error()
        assert credential.status == ConnectionStatus.DISABLED

    def test_touch(self, credential):
        """Test last activity timestamp."""
        now = datetime(2024, 1, 1, 12, 0)
        credential.touch(now)
        assert credential.last_activity_at == now

    def test_dict_roundtrip(self, credential):
        """Test serialisation keeps every field."""
        credential.touch(datetime(2024, 1, 1, 12, 0))

        restored = AccountCredential.from_dict(credential.to_dict())

        assert restored == credential
        assert restored.cookies.get('zpw_sek') == 'sek-1'
        assert restored.status == ConnectionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_cookie_lock_is_reused(self, credential):
        """Test the cookie lock is created once per credential."""
        lock = credential.cookie_lock

        assert isinstance(lock, asyncio.Lock)
        assert credential.cookie_lock is lock
