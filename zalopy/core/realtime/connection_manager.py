"""
Real-time connection management.

One :class:`ConnectionSupervisor` task per account owns the WebSocket, the
keepalive task and the reconnect loop. :class:`ConnectionManager` keeps the
account -> supervisor registry, the per-account replay buffers and the
consumer counts that drive idle teardown.
"""
import asyncio
import inspect
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional

import aiohttp

from .classifier import classify_payload
from .models import ConnectionEvent, InboundEventEnvelope, StatusEvent
from ..account import AccountCredential
from ..api import endpoints
from ..api.async_client import AsyncAPIClient
from ..api.config import APIConfig
from ..crypto import decrypt_websocket_frame, split_frame
from ..exceptions import (
    AuthExpiredError,
    DecryptionError,
    LimitExceededError,
    ProtocolError,
    TransientNetworkError,
)
from ..logging import get_logger, redact

logger = get_logger('zalopy.realtime')

NORMAL_CLOSURE = 1000

EventSink = Callable[[InboundEventEnvelope], Any]
StatusSink = Callable[[StatusEvent], Any]
WSConnect = Callable[[str, Mapping[str, str], Optional[float]], Awaitable[Any]]


class _Outcome(Enum):
    STOP = 'stop'
    RECONNECT = 'reconnect'
    AUTH_ERROR = 'auth_error'


async def _deliver(callback: Optional[Callable], item: Any, what: str) -> None:
    """Invoke a host callback (sync or async); failures are logged only."""
    if callback is None:
        return
    try:
        result = callback(item)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"{what} callback failed: {e}", exc_info=True)


class ConnectionRegistry:
    """
    Map of account id to its connection supervisor.

    Membership changes happen under :attr:`lock`.
    """

    def __init__(self):
        self._supervisors: Dict[str, 'ConnectionSupervisor'] = {}
        self._lock: Optional[asyncio.Lock] = None

    @property
    def lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._supervisors

    def __len__(self) -> int:
        return len(self._supervisors)

    def get(self, account_id: str) -> Optional['ConnectionSupervisor']:
        return self._supervisors.get(account_id)

    def add(self, supervisor: 'ConnectionSupervisor') -> None:
        self._supervisors[supervisor.account_id] = supervisor

    def pop(self, account_id: str) -> Optional['ConnectionSupervisor']:
        return self._supervisors.pop(account_id, None)

    def account_ids(self) -> List[str]:
        return list(self._supervisors)


class ConnectionSupervisor:
    """
    Owns one account's real-time connection.

    Connects, reads frames in order, sends keepalives and reconnects with
    bounded exponential backoff until stopped, closed normally by the
    server, or the credential turns out to be unusable.
    """

    def __init__(
        self,
        credential: AccountCredential,
        event_sink: EventSink,
        status_sink: Optional[StatusSink],
        config: APIConfig,
        ws_connect: WSConnect,
        buffer: Deque[InboundEventEnvelope],
        on_exit: Optional[Callable[['ConnectionSupervisor'], Awaitable[None]]] = None
    ):
        self._credential = credential
        self._event_sink = event_sink
        self._status_sink = status_sink
        self._config = config
        self._ws_connect = ws_connect
        self._buffer = buffer
        self._on_exit = on_exit

        self._task: Optional[asyncio.Task] = None
        self._ws: Any = None
        self._stopping = False
        self._cipher_key: Optional[str] = None
        self._failures = 0
        self._crypto_failures = 0

    @property
    def account_id(self) -> str:
        return self._credential.account_id

    @property
    def credential(self) -> AccountCredential:
        return self._credential

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Close the socket with a normal closure and cancel any pending reconnect."""
        self._stopping = True

        ws = self._ws
        if ws is not None and not ws.closed:
            try:
                await ws.close(code=NORMAL_CLOSURE, message=b'client stop')
            except (aiohttp.ClientError, ConnectionError) as e:
                logger.debug(f"Error closing socket for {self.account_id}: {e!r}")

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def wait(self) -> None:
        """Wait until the supervisor exits."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _emit(self, status: ConnectionEvent, **detail) -> None:
        logger.info(f"[{self.account_id}] {status.value} {detail or ''}".rstrip())
        await _deliver(self._status_sink, StatusEvent(self.account_id, status, detail), 'Status')

    def _build_url(self) -> str:
        credential = self._credential
        return (
            f"{endpoints.WEBSOCKET_URL}?zpw_ver={credential.api_version}"
            f"&zpw_type={credential.api_type}&t={int(time.time() * 1000)}"
        )

    def _build_headers(self) -> Dict[str, str]:
        # read on every attempt so reconnects pick up rotated cookies
        return {
            'Cookie': self._credential.cookies.to_header(),
            'Origin': endpoints.WEBSOCKET_ORIGIN,
            'User-Agent': self._config.user_agent,
        }

    async def _run(self) -> None:
        realtime = self._config.realtime
        try:
            while not self._stopping:
                outcome = await self._connect_once()

                if self._stopping or outcome is _Outcome.STOP:
                    break

                if outcome is _Outcome.AUTH_ERROR:
                    self._credential.mark_auth_error()
                    await self._emit(ConnectionEvent.AUTH_ERROR)
                    break

                delay = realtime.reconnect_delay(self._failures)
                self._failures += 1
                await self._emit(
                    ConnectionEvent.RECONNECT_SCHEDULED, delay=delay, attempt=self._failures
                )
                await asyncio.sleep(delay)
        finally:
            self._ws = None
            await self._emit(ConnectionEvent.STOPPED)
            if self._on_exit is not None:
                await self._on_exit(self)

    async def _connect_once(self) -> _Outcome:
        try:
            ws = await self._ws_connect(
                self._build_url(), self._build_headers(), self._config.realtime.heartbeat
            )
        except AuthExpiredError as e:
            logger.error(f"[{self.account_id}] Connection rejected: {e}")
            return _Outcome.AUTH_ERROR
        except TransientNetworkError as e:
            logger.warning(f"[{self.account_id}] Connection failed: {e}")
            await self._emit(ConnectionEvent.DISCONNECTED, reason=str(e))
            return _Outcome.RECONNECT

        if self._stopping:
            await ws.close(code=NORMAL_CLOSURE)
            return _Outcome.STOP

        self._ws = ws
        self._cipher_key = None
        self._failures = 0
        self._credential.touch()
        await self._emit(ConnectionEvent.CONNECTED)

        keepalive = asyncio.create_task(self._keepalive(ws))
        try:
            outcome = await self._read_loop(ws)
        finally:
            keepalive.cancel()
            try:
                await keepalive
            except asyncio.CancelledError:
                pass
            self._ws = None

        await self._emit(ConnectionEvent.DISCONNECTED, code=ws.close_code)
        return outcome

    async def _read_loop(self, ws: Any) -> _Outcome:
        async for msg in ws:
            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                outcome = await self._handle_frame(msg.data)
                if outcome is not None:
                    if not ws.closed:
                        await ws.close(code=NORMAL_CLOSURE)
                    return outcome
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.warning(f"[{self.account_id}] Socket error: {ws.exception()!r}")
                break

        if self._stopping or ws.close_code == NORMAL_CLOSURE:
            return _Outcome.STOP
        return _Outcome.RECONNECT

    async def _handle_frame(self, raw: Any) -> Optional[_Outcome]:
        """Decode, classify and dispatch one frame. Returns an outcome to end the connection."""
        try:
            frame = split_frame(raw)
        except ProtocolError as e:
            logger.debug(f"[{self.account_id}] Ignoring frame: {e}")
            return None

        if frame.session_rotated:
            logger.warning(f"[{self.account_id}] Session cookie rotated, reconnecting")
            return _Outcome.RECONNECT

        key = frame.key or self._cipher_key
        if not key:
            logger.warning(f"[{self.account_id}] Frame without usable cipher key, reconnecting")
            return _Outcome.RECONNECT
        if frame.key and frame.key != self._cipher_key:
            logger.debug(f"[{self.account_id}] Cipher key {redact(frame.key)}")
        self._cipher_key = key

        try:
            payload = decrypt_websocket_frame(key, frame.envelope)
        except DecryptionError as e:
            self._crypto_failures += 1
            logger.error(
                f"[{self.account_id}] {e} "
                f"({self._crypto_failures}/{self._config.realtime.max_crypto_failures})"
            )
            if self._crypto_failures >= self._config.realtime.max_crypto_failures:
                return _Outcome.AUTH_ERROR
            return _Outcome.RECONNECT

        self._crypto_failures = 0
        self._credential.touch()
        logger.debug(
            f"[{self.account_id}] Frame v{frame.version} cmd {frame.cmd}/{frame.sub_cmd} "
            f"generation {frame.generation}"
        )

        for event in classify_payload(self.account_id, payload):
            self._buffer.append(event)
            await _deliver(self._event_sink, event, 'Event sink')
        return None

    async def _keepalive(self, ws: Any) -> None:
        interval = self._config.realtime.keepalive_interval
        while not ws.closed:
            await asyncio.sleep(interval)
            if ws.closed:
                return
            try:
                await ws.send_str('')
                logger.debug(f"[{self.account_id}] Keepalive sent")
            except (aiohttp.ClientError, ConnectionError) as e:
                logger.warning(f"[{self.account_id}] Keepalive failed: {e!r}")
                return


class ConnectionManager:
    """
    Manages zero or one live connection per account.

    Example:
        >>> manager = ConnectionManager(config)
        >>> await manager.start(credential, on_event, on_status)
        >>> manager.recent_events(credential.account_id, limit=10)
        >>> await manager.stop(credential.account_id)
    """

    def __init__(
        self,
        config: Optional[APIConfig] = None,
        registry: Optional[ConnectionRegistry] = None,
        ws_connect: Optional[WSConnect] = None,
        api_client: Optional[AsyncAPIClient] = None
    ):
        """
        Initialize connection manager.

        Args:
            config: Client configuration
            registry: Shared supervisor registry (a private one by default)
            ws_connect: ``(url, headers, heartbeat) -> websocket`` factory
            api_client: HTTP client whose session opens WebSockets when
                ``ws_connect`` is not given
        """
        self._config = config or APIConfig.default()
        self._registry = registry or ConnectionRegistry()
        self._owned_client: Optional[AsyncAPIClient] = None

        if ws_connect is None:
            if api_client is None:
                api_client = self._owned_client = AsyncAPIClient(self._config)
            ws_connect = api_client.ws_connect
        self._ws_connect = ws_connect

        self._buffers: Dict[str, Deque[InboundEventEnvelope]] = {}
        self._consumers: Dict[str, int] = {}
        self._idle_timers: Dict[str, asyncio.Task] = {}

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    async def start(
        self,
        credential: AccountCredential,
        event_sink: EventSink,
        status_sink: Optional[StatusSink] = None
    ) -> bool:
        """
        Start listening for an account.

        Returns:
            True if a connection was started, False if one is already registered

        Raises:
            AuthExpiredError: If the credential is not active
            LimitExceededError: If ``max_connections`` connections are registered
        """
        account_id = credential.account_id
        if not credential.is_active():
            raise AuthExpiredError(
                f"Credential {account_id} is {credential.status.value}, not active"
            )

        async with self._registry.lock:
            if account_id in self._registry:
                logger.debug(f"Connection for {account_id} already registered")
                return False

            limit = self._config.realtime.max_connections
            if len(self._registry) >= limit:
                raise LimitExceededError(f"Connection limit of {limit} reached")

            buffer = self._buffers.get(account_id)
            if buffer is None:
                buffer = deque(maxlen=self._config.realtime.event_buffer_size)
                self._buffers[account_id] = buffer

            supervisor = ConnectionSupervisor(
                credential,
                event_sink,
                status_sink,
                self._config,
                self._ws_connect,
                buffer,
                on_exit=self._on_supervisor_exit,
            )
            self._registry.add(supervisor)
            supervisor.start()

        logger.info(f"Started listening for {account_id}")
        return True

    async def stop(self, account_id: str) -> bool:
        """
        Stop listening for an account. Idempotent.

        Returns:
            True if a connection was registered
        """
        self._cancel_idle_timer(account_id)

        async with self._registry.lock:
            supervisor = self._registry.pop(account_id)

        if supervisor is None:
            return False

        await supervisor.stop()
        logger.info(f"Stopped listening for {account_id}")
        return True

    async def _on_supervisor_exit(self, supervisor: ConnectionSupervisor) -> None:
        async with self._registry.lock:
            if self._registry.get(supervisor.account_id) is supervisor:
                self._registry.pop(supervisor.account_id)

    def is_running(self, account_id: str) -> bool:
        supervisor = self._registry.get(account_id)
        return supervisor is not None and not supervisor.done

    def is_connected(self, account_id: str) -> bool:
        supervisor = self._registry.get(account_id)
        return supervisor is not None and supervisor.connected

    def recent_events(
        self,
        account_id: str,
        limit: Optional[int] = None
    ) -> List[InboundEventEnvelope]:
        """Return buffered events for an account, oldest first."""
        events = list(self._buffers.get(account_id, ()))
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    # Consumer tracking

    def consumer_count(self, account_id: str) -> int:
        return self._consumers.get(account_id, 0)

    def attach_consumer(self, account_id: str) -> int:
        """Register a downstream consumer and cancel any pending idle teardown."""
        self._cancel_idle_timer(account_id)
        self._consumers[account_id] = self._consumers.get(account_id, 0) + 1
        return self._consumers[account_id]

    def detach_consumer(self, account_id: str) -> int:
        """Unregister a consumer; the last one out starts the idle grace timer."""
        count = max(0, self._consumers.get(account_id, 0) - 1)
        self._consumers[account_id] = count

        if count == 0 and account_id not in self._idle_timers:
            self._idle_timers[account_id] = asyncio.create_task(
                self._idle_teardown(account_id)
            )
        return count

    def _cancel_idle_timer(self, account_id: str) -> None:
        timer = self._idle_timers.pop(account_id, None)
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    async def _idle_teardown(self, account_id: str) -> None:
        grace = self._config.realtime.idle_grace_period
        await asyncio.sleep(grace)
        self._idle_timers.pop(account_id, None)
        logger.info(f"No consumers for {account_id} after {grace}s, stopping")
        await self.stop(account_id)

    async def close(self) -> None:
        """Stop every connection and release resources."""
        for account_id in list(self._idle_timers):
            self._cancel_idle_timer(account_id)

        for account_id in self._registry.account_ids():
            await self.stop(account_id)

        if self._owned_client is not None:
            await self._owned_client.close()
