"""
ZaloClient - high-level async facade.

Example:
    >>> async with ZaloClient() as zalo:
    ...     started = await zalo.start_login()
    ...     # show started.data['qr_image'] to the user
    ...     result = await zalo.poll_login(started.qr_session_id)
    ...     await zalo.send(result.credential, OutboundSendRequest('12345', text='hi'))
"""
from typing import List, Optional

from .core.account import AccountCredential, ConnectionStatus
from .core.api import APIConfig, AsyncAPIClient
from .core.auth import LoginFlow, LoginResult, LoginState
from .core.logging import get_logger
from .core.messaging import MessageClient, OutboundSendRequest, SendResult
from .core.realtime import ConnectionManager, ConnectionRegistry, InboundEventEnvelope
from .core.realtime.connection_manager import EventSink, StatusSink
from .core.session import (
    CredentialStore,
    MemoryCredentialStore,
    MemorySessionStore,
    SessionStore,
)

logger = get_logger('zalopy.client')


class ZaloClient:
    """
    One object wiring login, real-time listening and sending together.

    Shares a single HTTP session between every component. Credentials that
    complete a login are saved in the credential store.
    """

    def __init__(
        self,
        config: Optional[APIConfig] = None,
        session_store: Optional[SessionStore] = None,
        credential_store: Optional[CredentialStore] = None,
        registry: Optional[ConnectionRegistry] = None,
        api_client: Optional[AsyncAPIClient] = None
    ):
        """
        Initialize the client.

        Args:
            config: Client configuration
            session_store: TTL store for QR handshakes (in memory by default)
            credential_store: Durable credential storage (in memory by default)
            registry: Connection registry shared across clients
            api_client: HTTP client (created and owned by default)
        """
        self._config = config or APIConfig.default()
        self._owns_api = api_client is None
        self._api = api_client or AsyncAPIClient(self._config)
        self._session_store = session_store or MemorySessionStore()
        self._credentials = credential_store or MemoryCredentialStore()

        self._login = LoginFlow(
            self._api, self._session_store, self._credentials, config=self._config
        )
        self._connections = ConnectionManager(
            self._config, registry=registry, api_client=self._api
        )
        self._messages = MessageClient(self._api, self._config)

    @property
    def config(self) -> APIConfig:
        return self._config

    @property
    def login_flow(self) -> LoginFlow:
        return self._login

    @property
    def connections(self) -> ConnectionManager:
        return self._connections

    @property
    def messages(self) -> MessageClient:
        return self._messages

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    async def __aenter__(self) -> 'ZaloClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Stop every connection and close the HTTP session."""
        await self._connections.close()
        if self._owns_api:
            await self._api.close()

    # Login

    async def start_login(self) -> LoginResult:
        """Start a QR handshake; ``data`` holds ``qr_session_id`` and ``qr_image``."""
        return await self._login.start_login()

    async def poll_login(
        self,
        qr_session_id: str,
        wait: bool = True,
        timeout: Optional[float] = None
    ) -> LoginResult:
        """Advance a QR handshake and persist the credential once it completes."""
        result = await self._login.poll_login(qr_session_id, wait=wait, timeout=timeout)
        if result.state == LoginState.COMPLETED and result.credential is not None:
            await self._credentials.save(result.credential)
            logger.info(f"Saved credential for {result.credential.account_id}")
        return result

    async def check_session(self, credential: AccountCredential) -> bool:
        """Re-validate a credential; invalid sessions are marked and persisted."""
        valid = await self._login.check_session(credential)
        if not valid:
            credential.mark_auth_error()
            await self._credentials.save(credential)
        return valid

    async def get_credential(self, account_id: str) -> Optional[AccountCredential]:
        return await self._credentials.get(account_id)

    async def list_credentials(self) -> List[AccountCredential]:
        return await self._credentials.list()

    # Real-time

    async def start_listening(
        self,
        credential: AccountCredential,
        event_sink: EventSink,
        status_sink: Optional[StatusSink] = None
    ) -> bool:
        """Open the account's real-time connection. Idempotent."""
        return await self._connections.start(credential, event_sink, status_sink)

    async def stop_listening(self, account_id: str) -> bool:
        return await self._connections.stop(account_id)

    def is_listening(self, account_id: str) -> bool:
        return self._connections.is_running(account_id)

    def attach_consumer(self, account_id: str) -> int:
        return self._connections.attach_consumer(account_id)

    def detach_consumer(self, account_id: str) -> int:
        return self._connections.detach_consumer(account_id)

    def recent_events(
        self,
        account_id: str,
        limit: Optional[int] = None
    ) -> List[InboundEventEnvelope]:
        return self._connections.recent_events(account_id, limit)

    # Sending

    async def send(self, credential: AccountCredential, request: OutboundSendRequest) -> SendResult:
        """Send text or attachments; a credential that turns unusable is persisted."""
        result = await self._messages.send(credential, request)
        if credential.status == ConnectionStatus.AUTH_ERROR:
            await self._credentials.save(credential)
        return result

    async def disable_account(self, credential: AccountCredential) -> None:
        """Stop listening, mark the credential disabled and persist it."""
        await self._connections.stop(credential.account_id)
        credential.disable()
        await self._credentials.save(credential)
        logger.info(f"Disabled account {credential.account_id}")
