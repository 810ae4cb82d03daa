"""Tests for the real-time connection manager."""
import asyncio
import base64
import json
import logging

import aiohttp
import pytest

from zalopy.core.account import AccountCredential, ConnectionStatus
from zalopy.core.api import APIConfig, RealtimeConfig
from zalopy.core.crypto import GEN_GCM, GEN_PLAIN, encode_websocket_frame
from zalopy.core.exceptions import AuthExpiredError, LimitExceededError, TransientNetworkError
from zalopy.core.realtime import ConnectionEvent, ConnectionManager, EventKind

_CLOSE = object()


class FakeWebSocket:
    """In-memory stand-in for aiohttp.ClientWebSocketResponse."""

    def __init__(self, frames=()):
        self._queue = asyncio.Queue()
        self.closed = False
        self.close_code = None
        self.sent = []
        for frame in frames:
            self.push(frame)

    def push(self, data):
        self._queue.put_nowait(aiohttp.WSMessage(aiohttp.WSMsgType.TEXT, data, None))

    def drop(self, code):
        """Simulate the server closing the socket."""
        self._queue.put_nowait((_CLOSE, code))

    async def close(self, code=1000, message=b''):
        if not self.closed:
            self.closed = True
            self.close_code = code
            self._queue.put_nowait((_CLOSE, code))
        return True

    async def send_str(self, data):
        self.sent.append(data)

    def exception(self):
        return None

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._queue.get()
        if isinstance(item, tuple) and item[0] is _CLOSE:
            if not self.closed:
                self.closed = True
                self.close_code = item[1]
            raise StopAsyncIteration
        return item


class FakeConnector:
    """ws_connect replacement handing out scripted sockets or errors."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.sockets = []

    async def __call__(self, url, headers, heartbeat=None):
        self.calls.append((url, dict(headers)))
        outcome = self.outcomes.pop(0) if self.outcomes else FakeWebSocket()
        if isinstance(outcome, Exception):
            raise outcome
        self.sockets.append(outcome)
        return outcome


async def wait_until(predicate, timeout=2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(_poll(), timeout)


def chat_frame(key, text='hello', generation=GEN_GCM):
    payload = {'data': {'msgs': [{'uidFrom': '2002', 'msgType': 'webchat', 'content': text}]}}
    return json.dumps(encode_websocket_frame(payload, generation, key))


@pytest.fixture
def config():
    return APIConfig(realtime=RealtimeConfig(
        keepalive_interval=0.02,
        reconnect_initial_delay=0.01,
        reconnect_max_delay=0.05,
        idle_grace_period=0.05,
        max_connections=2,
    ))


class Recorder:
    """Collects events and status changes."""

    def __init__(self):
        self.events = []
        self.statuses = []

    def on_event(self, event):
        self.events.append(event)

    async def on_status(self, status):
        self.statuses.append(status)

    def seen(self, status):
        return [s for s in self.statuses if s.status == status]


@pytest.fixture
def recorder():
    return Recorder()


class TestStartStop:
    """Test suite for starting and stopping connections."""

    @pytest.mark.asyncio
    async def test_delivers_decoded_events(self, config, credential, frame_key, recorder):
        """Test frames are decoded, classified and delivered."""
        connector = FakeConnector(FakeWebSocket([chat_frame(frame_key)]))
        manager = ConnectionManager(config, ws_connect=connector)

        assert await manager.start(credential, recorder.on_event, recorder.on_status)
        await wait_until(lambda: recorder.events)

        event = recorder.events[0]
        assert event.kind == EventKind.CHAT_MESSAGE
        assert event.account_id == '1001'
        assert event.payload['content'] == 'hello'
        assert manager.recent_events('1001') == [event]
        assert manager.is_running('1001')
        assert manager.is_connected('1001')
        assert recorder.seen(ConnectionEvent.CONNECTED)

        url, headers = connector.calls[0]
        assert url.startswith('wss://ws2-msg.chat.zalo.me/?zpw_ver=655&zpw_type=30&t=')
        assert headers['Cookie'] == 'zpsid=sid-1; zpw_sek=sek-1'
        assert headers['Origin'] == 'https://chat.zalo.me'

        assert await manager.stop('1001')
        assert not manager.is_running('1001')
        assert connector.sockets[0].close_code == 1000
        assert recorder.seen(ConnectionEvent.STOPPED)
        await manager.close()

    @pytest.mark.asyncio
    async def test_logs_frame_header(self, config, credential, frame_key, recorder, caplog):
        """Test the binary frame header is reported with each decoded frame."""
        caplog.set_level(logging.DEBUG, logger='zalopy.realtime')
        connector = FakeConnector(FakeWebSocket(['\x01\x01\x02\x00' + chat_frame(frame_key)]))
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event, recorder.on_status)
        await wait_until(lambda: recorder.events)
        await manager.close()

        assert '[1001] Frame v1 cmd 513/0 generation 2' in caplog.text

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, config, credential, recorder):
        """Test a second start for the same account is a no-op."""
        connector = FakeConnector()
        manager = ConnectionManager(config, ws_connect=connector)

        assert await manager.start(credential, recorder.on_event)
        assert not await manager.start(credential, recorder.on_event)
        await wait_until(lambda: manager.is_connected('1001'))

        assert len(connector.calls) == 1
        await manager.close()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, config):
        """Test stopping an unknown account."""
        manager = ConnectionManager(config, ws_connect=FakeConnector())
        assert not await manager.stop('nobody')

    @pytest.mark.asyncio
    async def test_inactive_credential_rejected(self, config, credential, recorder):
        """Test only active credentials may connect."""
        credential.mark_auth_error()
        manager = ConnectionManager(config, ws_connect=FakeConnector())

        with pytest.raises(AuthExpiredError):
            await manager.start(credential, recorder.on_event)

    @pytest.mark.asyncio
    async def test_connection_limit(self, config, credential, recorder):
        """Test the registry refuses more than max_connections accounts."""
        manager = ConnectionManager(config, ws_connect=FakeConnector())
        others = [
            AccountCredential.from_dict({**credential.to_dict(), 'remote_user_id': uid})
            for uid in ('2001', '3001')
        ]

        await manager.start(credential, recorder.on_event)
        await manager.start(others[0], recorder.on_event)
        with pytest.raises(LimitExceededError):
            await manager.start(others[1], recorder.on_event)

        await manager.close()
        assert not manager.is_running('1001')

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_reconnect(self, credential, recorder):
        """Test stop during backoff ends the supervisor without reconnecting."""
        config = APIConfig(realtime=RealtimeConfig(reconnect_initial_delay=30))
        connector = FakeConnector(TransientNetworkError('refused'))
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event, recorder.on_status)
        await wait_until(lambda: recorder.seen(ConnectionEvent.RECONNECT_SCHEDULED))

        assert await manager.stop('1001')
        assert len(connector.calls) == 1
        assert recorder.seen(ConnectionEvent.STOPPED)
        assert recorder.seen(ConnectionEvent.RECONNECT_SCHEDULED)[0].detail['delay'] == 30


class TestReconnect:
    """Test suite for reconnect and failure handling."""

    @pytest.mark.asyncio
    async def test_reconnect_uses_current_cookies(self, config, credential, recorder):
        """Test a reconnect sends cookies rotated since the first connect."""
        first = FakeWebSocket()
        connector = FakeConnector(first)
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event, recorder.on_status)
        await wait_until(lambda: manager.is_connected('1001'))

        credential.cookies.set('zpw_sek', 'sek-2')
        first.drop(1006)
        await wait_until(lambda: len(connector.calls) == 2)

        assert 'zpw_sek=sek-2' in connector.calls[1][1]['Cookie']
        assert recorder.seen(ConnectionEvent.RECONNECT_SCHEDULED)
        await manager.close()

    @pytest.mark.asyncio
    async def test_transient_failure_then_connect(self, config, credential, recorder):
        """Test connection errors are retried."""
        connector = FakeConnector(TransientNetworkError('refused'))
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event, recorder.on_status)
        await wait_until(lambda: manager.is_connected('1001'))

        disconnected = recorder.seen(ConnectionEvent.DISCONNECTED)
        assert 'refused' in disconnected[0].detail['reason']
        assert len(connector.calls) == 2
        await manager.close()

    @pytest.mark.asyncio
    async def test_server_normal_closure_stops(self, config, credential, recorder):
        """Test a normal closure from the server is not retried."""
        ws = FakeWebSocket()
        connector = FakeConnector(ws)
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event, recorder.on_status)
        await wait_until(lambda: manager.is_connected('1001'))
        ws.drop(1000)
        await wait_until(lambda: not manager.is_running('1001'))

        assert recorder.seen(ConnectionEvent.STOPPED)
        assert len(connector.calls) == 1
        assert not recorder.seen(ConnectionEvent.RECONNECT_SCHEDULED)

    @pytest.mark.asyncio
    async def test_session_rotation_frame_reconnects(self, config, credential, frame_key, recorder):
        """Test a zpw_sek frame ends the connection and reconnects."""
        first = FakeWebSocket([json.dumps({'key': frame_key, 'encrypt': 0, 'data': 'zpw_sek expired'})])
        connector = FakeConnector(first)
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event, recorder.on_status)
        await wait_until(lambda: len(connector.calls) == 2)

        assert first.close_code == 1000
        assert recorder.events == []
        await manager.close()

    @pytest.mark.asyncio
    async def test_frame_without_key_reconnects(self, config, credential, recorder):
        """Test a first frame with no cipher key forces a reconnect."""
        first = FakeWebSocket([json.dumps({'encrypt': 0, 'data': '{}'})])
        connector = FakeConnector(first)
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event)
        await wait_until(lambda: len(connector.calls) == 2)
        await manager.close()

    @pytest.mark.asyncio
    async def test_key_is_remembered_per_connection(self, config, credential, frame_key, recorder):
        """Test frames after the first may omit the key."""
        keyed = chat_frame(frame_key, 'first')
        unkeyed = json.loads(chat_frame(frame_key, 'second'))
        del unkeyed['key']
        connector = FakeConnector(FakeWebSocket([keyed, json.dumps(unkeyed)]))
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event)
        await wait_until(lambda: len(recorder.events) == 2)

        assert [e.payload['content'] for e in recorder.events] == ['first', 'second']
        assert len(connector.calls) == 1
        await manager.close()

    @pytest.mark.asyncio
    async def test_repeated_crypto_failures_mark_auth_error(self, config, credential, frame_key, recorder):
        """Test three undecryptable frames in a row flag the credential."""
        garbage = base64.b64encode(b'x' * 64).decode()
        bad = json.dumps({'key': frame_key, 'encrypt': 2, 'data': garbage})
        connector = FakeConnector(*[FakeWebSocket([bad]) for _ in range(3)])
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event, recorder.on_status)
        await wait_until(lambda: not manager.is_running('1001'))

        assert credential.status == ConnectionStatus.AUTH_ERROR
        assert recorder.seen(ConnectionEvent.AUTH_ERROR)
        assert len(connector.calls) == 3
        assert not manager.is_running('1001')

    @pytest.mark.asyncio
    async def test_handshake_rejected_marks_auth_error(self, config, credential, recorder):
        """Test a 401 handshake is not retried."""
        connector = FakeConnector(AuthExpiredError('HTTP 401', 401))
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event, recorder.on_status)
        await wait_until(lambda: not manager.is_running('1001'))

        assert credential.status == ConnectionStatus.AUTH_ERROR
        assert len(connector.calls) == 1

    @pytest.mark.asyncio
    async def test_failing_sink_keeps_reading(self, config, credential, frame_key):
        """Test an event sink exception does not break the connection."""
        received = []

        def sink(event):
            received.append(event)
            raise RuntimeError('host bug')

        connector = FakeConnector(FakeWebSocket([chat_frame(frame_key, 'a'), chat_frame(frame_key, 'b')]))
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, sink)
        await wait_until(lambda: len(received) == 2)

        assert manager.is_connected('1001')
        await manager.close()


class TestBufferAndConsumers:
    """Test suite for the replay buffer, keepalive and idle teardown."""

    @pytest.mark.asyncio
    async def test_ring_buffer_keeps_latest_hundred(self, config, credential, frame_key, recorder):
        """Test the replay buffer holds only the newest events."""
        frames = [chat_frame(frame_key, f"m{i}", GEN_PLAIN) for i in range(150)]
        connector = FakeConnector(FakeWebSocket(frames))
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event)
        await wait_until(lambda: len(recorder.events) == 150)

        recent = manager.recent_events('1001')
        assert len(recent) == 100
        assert recent[0].payload['content'] == 'm50'
        assert recent[-1].payload['content'] == 'm149'
        assert [e.payload['content'] for e in manager.recent_events('1001', limit=2)] == ['m148', 'm149']
        assert manager.recent_events('1001', limit=0) == []
        assert manager.recent_events('unknown') == []
        await manager.close()

    @pytest.mark.asyncio
    async def test_keepalive_sends_empty_frames(self, config, credential, recorder):
        """Test keepalive frames are empty text messages."""
        connector = FakeConnector()
        manager = ConnectionManager(config, ws_connect=connector)

        await manager.start(credential, recorder.on_event)
        await wait_until(lambda: connector.sockets and connector.sockets[0].sent)

        assert connector.sockets[0].sent[0] == ''
        await manager.close()

    @pytest.mark.asyncio
    async def test_idle_teardown_after_last_consumer(self, config, credential, recorder):
        """Test the connection stops once the grace period passes with no consumers."""
        manager = ConnectionManager(config, ws_connect=FakeConnector())
        await manager.start(credential, recorder.on_event)

        assert manager.attach_consumer('1001') == 1
        assert manager.detach_consumer('1001') == 0
        await wait_until(lambda: not manager.is_running('1001'))

        assert manager.consumer_count('1001') == 0

    @pytest.mark.asyncio
    async def test_reattach_cancels_teardown(self, config, credential, recorder):
        """Test a consumer returning within the grace period keeps the connection."""
        manager = ConnectionManager(config, ws_connect=FakeConnector())
        await manager.start(credential, recorder.on_event)

        manager.attach_consumer('1001')
        manager.detach_consumer('1001')
        manager.attach_consumer('1001')
        await asyncio.sleep(0.15)

        assert manager.is_running('1001')
        await manager.close()
        assert not manager.is_running('1001')
