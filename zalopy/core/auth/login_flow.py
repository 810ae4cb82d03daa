"""
QR code login handshake.

Drives the handshake from loading the login page to an authenticated
:class:`AccountCredential`::

    LoadingPage -> LoginInfoFetched -> ClientVerified -> QRGenerated
    -> AwaitingScan -> AwaitingConfirm -> SessionChecked
    -> UserInfoFetched -> Completed

with terminal failures Declined, Expired, AccountExists and ServerError.
State between ``start_login`` and ``poll_login`` lives in the SessionStore,
so any number of handshakes may run concurrently.
"""
import asyncio
import re
import time
import uuid
from typing import Any, Callable, Dict, Optional

from .models import LoginEvent, LoginResult, LoginState
from ..account import AccountCredential, CookieJar
from ..api import endpoints
from ..api.async_client import AsyncAPIClient
from ..api.config import APIConfig
from ..api.errors import APIErrorCodes, ZaloAPIError
from ..api.events import EventEmitter
from ..crypto import (
    build_login_params,
    decrypt_response_json,
    derive_login_key_material,
    make_url,
)
from ..exceptions import AuthExpiredError, ProtocolError, ZaloException
from ..logging import get_logger, redact
from ..session import CredentialStore, QRLoginSession, SessionStore

logger = get_logger('zalopy.login')

LOGIN_HEADERS = {
    'dnt': '1',
    'origin': endpoints.LOGIN_ORIGIN,
    'referer': endpoints.LOGIN_PAGE,
}

_DATA_URI_PREFIX = re.compile(r'^data:image/[a-z]+;base64,')


def normalize_phone(phone: str) -> str:
    """Rewrite the ``84`` country prefix to a local leading ``0``."""
    phone = str(phone or '')
    if phone.startswith('84'):
        return '0' + phone[2:]
    return phone


class LoginFlow:
    """
    QR code login state machine.

    Example:
        >>> flow = LoginFlow(api_client, MemorySessionStore())
        >>> flow.on_state(lambda event: print(event.state))
        >>> started = await flow.start_login()
        >>> # show started.data['qr_image'] to the user
        >>> result = await flow.poll_login(started.qr_session_id)
        >>> result.credential
    """

    SESSION_KEY_PREFIX = 'zalo_qr_'

    def __init__(
        self,
        api_client: AsyncAPIClient,
        session_store: SessionStore,
        credential_store: Optional[CredentialStore] = None,
        config: Optional[APIConfig] = None,
        device_id_factory: Optional[Callable[[], str]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize login flow.

        Args:
            api_client: HTTP client
            session_store: TTL store for handshake state
            credential_store: Existing credentials, for the AccountExists check
            config: Client configuration (defaults to the api client's)
            device_id_factory: Generates the device id of new credentials
            clock: Monotonic clock used for polling deadlines
        """
        self._api = api_client
        self._store = session_store
        self._credentials = credential_store
        self._config = config or getattr(api_client, 'config', None) or APIConfig.default()
        self._device_id_factory = device_id_factory or (lambda: str(uuid.uuid4()))
        self._clock = clock
        self._emitter = EventEmitter('zalopy.login')

    def on_state(self, callback: Callable[[LoginEvent], Any]) -> 'LoginFlow':
        """Register an observer called with a :class:`LoginEvent` on every transition."""
        self._emitter.on('state', callback)
        return self

    def off_state(self, callback: Optional[Callable] = None) -> 'LoginFlow':
        self._emitter.off('state', callback)
        return self

    def _session_key(self, qr_session_id: str) -> str:
        return f"{self.SESSION_KEY_PREFIX}{qr_session_id}"

    async def _transition(
        self,
        state: LoginState,
        message: str = '',
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        logger.info(f"Login state -> {state.value}{': ' + message if message else ''}")
        await self._emitter.emit('state', LoginEvent(state, message, dict(data or {})))

    async def _finish(
        self,
        key: str,
        state: LoginState,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        credential: Optional[AccountCredential] = None,
        error_kind: Optional[str] = None
    ) -> LoginResult:
        """Enter a terminal state. The handshake entry is always deleted."""
        await self._store.delete(key)
        await self._transition(state, message, data)
        return LoginResult(state, message, dict(data or {}), credential, error_kind)

    # HTTP steps

    async def _load_login_page(self, jar: CookieJar) -> str:
        response = await self._api.get(endpoints.LOGIN_PAGE, cookies=jar)
        if not response.ok:
            raise ProtocolError(f"Login page returned HTTP {response.status}")

        match = re.search(endpoints.LOGIN_VERSION_PATTERN, response.text)
        if not match:
            raise ProtocolError("Login bundle version not found on login page")
        return match.group(1)

    async def _post_form(self, url: str, jar: CookieJar, form: Dict[str, Any]) -> Dict[str, Any]:
        """POST a login form and return the JSON body without checking ``error_code``."""
        response = await self._api.post(url, cookies=jar, data=form, headers=LOGIN_HEADERS)
        if not response.ok:
            raise ProtocolError(f"{url} returned HTTP {response.status}")

        body = response.json()
        if not isinstance(body, dict):
            raise ProtocolError(f"Unexpected response from {url}")
        return body

    async def _post_checked(self, url: str, jar: CookieJar, form: Dict[str, Any]) -> Dict[str, Any]:
        body = await self._post_form(url, jar, form)
        code = body.get('error_code', 0)
        if code != APIErrorCodes.SUCCESS:
            raise ZaloAPIError(code, body.get('error_message'))
        return body

    async def _poll(
        self,
        url: str,
        session: QRLoginSession,
        form: Dict[str, Any],
        wait: bool,
        timeout: float
    ) -> Dict[str, Any]:
        """Poll a waiting endpoint until it stops answering 'pending'."""
        deadline = self._clock() + timeout

        while True:
            body = await self._post_form(url, session.cookies, form)
            if body.get('error_code') != APIErrorCodes.QR_PENDING or not wait:
                return body

            if self._clock() >= deadline:
                return {
                    'error_code': APIErrorCodes.LOCAL_TIMEOUT,
                    'error_message': APIErrorCodes.get_message(APIErrorCodes.LOCAL_TIMEOUT),
                }
            await asyncio.sleep(self._config.login.poll_interval)

    async def _check_session(self, jar: CookieJar) -> bool:
        response = await self._api.get(endpoints.CHECK_SESSION, cookies=jar, headers=LOGIN_HEADERS)
        return response.status == 200

    async def _fetch_user_info(self, jar: CookieJar) -> Dict[str, Any]:
        response = await self._api.get(endpoints.USER_INFO, cookies=jar, headers=LOGIN_HEADERS)
        if not response.ok:
            raise ProtocolError(f"User info returned HTTP {response.status}")

        body = response.json()
        data = (body.get('data') if isinstance(body, dict) else None) or {}
        if not data.get('logged'):
            raise AuthExpiredError("Session is not logged in after confirmation")
        return data.get('info') or {}

    async def _fetch_login_info(self, session: QRLoginSession) -> Dict[str, Any]:
        """Fetch uid, phone number and secret key through the encrypted login-info call."""
        config = self._config
        key_material = derive_login_key_material(
            session.device_id,
            int(time.time() * 1000),
            api_type=config.api_type,
        )
        params = build_login_params(
            key_material,
            device_id=session.device_id,
            language=config.language,
            api_type=config.api_type,
            api_version=config.api_version,
            computer_name=config.computer_name,
        )
        url = make_url(endpoints.GET_LOGIN_INFO, params, config.api_type, config.api_version)

        response = await self._api.get(url, cookies=session.cookies)
        if not response.ok:
            raise ProtocolError(f"Login info returned HTTP {response.status}")

        body = response.json()
        if not isinstance(body, dict):
            raise ProtocolError("Login info response is not an object")
        if body.get('error_code', 0) != APIErrorCodes.SUCCESS:
            raise ZaloAPIError(body['error_code'], body.get('error_message'))

        payload = decrypt_response_json(key_material.key_bytes, body.get('data') or '')
        if not isinstance(payload, dict):
            raise ProtocolError("Login info payload is not an object")
        if payload.get('error_code', 0) != APIErrorCodes.SUCCESS:
            raise ZaloAPIError(payload['error_code'], payload.get('error_message'))

        data = payload.get('data')
        if not isinstance(data, dict) or not data.get('uid') or not data.get('zpw_enk'):
            raise ProtocolError("Login info is missing uid or secret key")
        return data

    # Public API

    async def start_login(self) -> LoginResult:
        """
        Start a handshake and generate the QR code.

        Returns:
            LoginResult in state QRGenerated whose data holds ``qr_session_id``,
            ``qr_image`` (base64 PNG) and ``code``; ServerError on failure
        """
        jar = CookieJar()
        qr_session_id = uuid.uuid4().hex
        key = self._session_key(qr_session_id)

        try:
            await self._transition(LoginState.LOADING_PAGE)
            version = await self._load_login_page(jar)

            await self._post_checked(endpoints.LOGIN_INFO, jar, {
                'continue': endpoints.LOGIN_CONTINUE,
                'v': version,
            })
            await self._transition(LoginState.LOGIN_INFO_FETCHED, data={'version': version})

            await self._post_checked(endpoints.VERIFY_CLIENT, jar, {
                'type': 'device',
                'continue': endpoints.LOGIN_CONTINUE,
                'v': version,
            })
            await self._transition(LoginState.CLIENT_VERIFIED)

            body = await self._post_checked(endpoints.QR_GENERATE, jar, {
                'continue': endpoints.LOGIN_CONTINUE,
                'v': version,
            })
            qr = body.get('data')
            if not isinstance(qr, dict):
                qr = {}
            code = qr.get('code')
            if not code:
                raise ProtocolError("QR generate response has no code")

            session = QRLoginSession(
                code=code,
                version=version,
                cookies=jar,
                device_id=self._device_id_factory(),
            )
            await self._store.set(key, session.to_dict(), ttl=self._config.login.qr_session_ttl)
        except ZaloException as e:
            logger.error(f"Failed to start login: {e}")
            return await self._finish(key, LoginState.SERVER_ERROR, str(e), error_kind=e.kind)

        data = {
            'qr_session_id': qr_session_id,
            'qr_image': _DATA_URI_PREFIX.sub('', qr.get('image') or ''),
            'code': code,
        }
        await self._transition(LoginState.QR_GENERATED, 'QR code generated', data)
        return LoginResult(LoginState.QR_GENERATED, 'QR code generated', data)

    async def poll_login(
        self,
        qr_session_id: str,
        wait: bool = True,
        timeout: Optional[float] = None
    ) -> LoginResult:
        """
        Advance a handshake.

        Args:
            qr_session_id: Id returned by :meth:`start_login`
            wait: Poll every ``poll_interval`` until the phone answers or the
                phase times out. With False, poll once and return
                AwaitingScan/AwaitingConfirm while the phone is still pending
            timeout: Per-phase timeout (defaults to ``login.phase_timeout``)

        Returns:
            LoginResult; Completed results carry the new credential
        """
        key = self._session_key(qr_session_id)
        raw = await self._store.get(key)
        if raw is None:
            return await self._finish(
                key, LoginState.EXPIRED, 'QR session expired or unknown',
                error_kind=AuthExpiredError.kind,
            )

        session = QRLoginSession.from_dict(raw)
        timeout = timeout if timeout is not None else self._config.login.phase_timeout
        ttl = self._config.login.qr_session_ttl

        try:
            if not session.scanned:
                await self._transition(LoginState.AWAITING_SCAN, 'Waiting for scan')
                scan = await self._poll(endpoints.QR_WAITING_SCAN, session, {
                    'code': session.code,
                    'continue': endpoints.CHAT_CONTINUE,
                    'v': session.version,
                }, wait, timeout)

                outcome = await self._phase_outcome(key, session, scan, LoginState.AWAITING_SCAN)
                if outcome:
                    return outcome

                info = scan.get('data') if isinstance(scan.get('data'), dict) else scan
                session.scanned = True
                session.avatar_url = info.get('avatar', '') or ''
                session.display_name = info.get('display_name', '') or ''
                await self._store.set(key, session.to_dict(), ttl=ttl)
                await self._transition(LoginState.AWAITING_CONFIRM, 'QR code scanned', {
                    'avatar': session.avatar_url,
                    'display_name': session.display_name,
                })

            confirm = await self._poll(endpoints.QR_WAITING_CONFIRM, session, {
                'code': session.code,
                'gToken': '',
                'gAction': 'CONFIRM_QR',
                'continue': endpoints.CHAT_CONTINUE,
                'v': session.version,
            }, wait, timeout)

            outcome = await self._phase_outcome(key, session, confirm, LoginState.AWAITING_CONFIRM)
            if outcome:
                return outcome

            if not await self._check_session(session.cookies):
                raise ProtocolError("Session check failed after confirmation")
            await self._transition(LoginState.SESSION_CHECKED)

            info = await self._fetch_user_info(session.cookies)
            display_name = info.get('name') or session.display_name
            avatar = info.get('avatar') or session.avatar_url
            await self._transition(LoginState.USER_INFO_FETCHED, data={
                'display_name': display_name,
                'avatar': avatar,
            })

            login_info = await self._fetch_login_info(session)
            uid = str(login_info['uid'])

            if self._credentials is not None and await self._credentials.get(uid) is not None:
                return await self._finish(
                    key, LoginState.ACCOUNT_EXISTS, 'Account already exists',
                    data={'remote_user_id': uid},
                    error_kind=ProtocolError.kind,
                )

            credential = AccountCredential(
                device_id=session.device_id,
                remote_user_id=uid,
                secret_key=login_info['zpw_enk'],
                cookies=session.cookies,
                display_name=display_name,
                phone_number=normalize_phone(login_info.get('phone_number', '')),
                avatar_url=avatar,
                api_type=self._config.api_type,
                api_version=self._config.api_version,
                language=self._config.language,
            )
            credential.activate()
            credential.touch()
            logger.info(
                f"Login {qr_session_id} completed for {uid} "
                f"(secret key {redact(credential.secret_key)})"
            )
        except ZaloException as e:
            logger.error(f"Login {qr_session_id} failed: {e}")
            return await self._finish(key, LoginState.SERVER_ERROR, str(e), error_kind=e.kind)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Login {qr_session_id} got a malformed response: {e!r}")
            return await self._finish(
                key, LoginState.SERVER_ERROR, f"Malformed response: {e!r}",
                error_kind=ProtocolError.kind,
            )

        return await self._finish(key, LoginState.COMPLETED, 'Login completed', data={
            'remote_user_id': credential.remote_user_id,
            'display_name': credential.display_name,
            'phone_number': credential.phone_number,
            'avatar': credential.avatar_url,
        }, credential=credential)

    async def _phase_outcome(
        self,
        key: str,
        session: QRLoginSession,
        body: Dict[str, Any],
        pending_state: LoginState
    ) -> Optional[LoginResult]:
        """Map a waiting-scan/confirm answer to a result, or None to continue."""
        code = body.get('error_code')
        if code == APIErrorCodes.SUCCESS:
            return None

        if code == APIErrorCodes.QR_PENDING:
            await self._store.set(key, session.to_dict(), ttl=self._config.login.qr_session_ttl)
            return LoginResult(pending_state, APIErrorCodes.get_message(code), {'code': session.code})

        message = body.get('error_message') or APIErrorCodes.get_message(code)
        state = LoginState.DECLINED if code == APIErrorCodes.QR_DECLINED else LoginState.EXPIRED
        return await self._finish(key, state, message, error_kind=AuthExpiredError.kind)

    async def check_session(self, credential: AccountCredential) -> bool:
        """
        Re-validate a stored credential's session cookies.

        Rotated cookies are written back to the credential.

        Returns:
            True when the session is still valid
        """
        try:
            async with credential.cookie_lock:
                valid = await self._check_session(credential.cookies)
        except ZaloException as e:
            logger.warning(f"Session check for {credential.account_id} failed: {e}")
            return False

        if not valid:
            logger.warning(f"Session for {credential.account_id} is no longer valid")
        return valid
