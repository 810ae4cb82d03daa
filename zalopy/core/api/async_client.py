"""
Async HTTP client for the remote platform.

Thin aiohttp wrapper that owns connection pooling and keeps each account's
cookie jar in sync: cookies are sent from the caller's :class:`CookieJar`
and every ``Set-Cookie`` on the response is written back before returning.
"""
import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import aiohttp

from .config import APIConfig
from ..account import CookieJar
from ..exceptions import AuthExpiredError, ProtocolError, TransientNetworkError
from ..logging import get_logger


def strip_query(url: str) -> str:
    """URL without its query string, for log output."""
    return url.split('?', 1)[0]


@dataclass
class APIResponse:
    """Buffered HTTP response."""
    status: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)
    url: str = ''

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """
        Parse the body as JSON.

        Raises:
            ProtocolError: If the body is not JSON
        """
        try:
            return json.loads(self.text)
        except json.JSONDecodeError as e:
            raise ProtocolError(
                f"Expected JSON from {strip_query(self.url)} (HTTP {self.status}): {e}"
            )


class AsyncAPIClient:
    """
    Asynchronous HTTP client.

    Features:
    - Shared connection pool
    - Configurable proxy, SSL, timeouts
    - Explicit per-account cookie jars (aiohttp's own jar is disabled)
    - WebSocket connections over the same session

    Example:
        >>> async with AsyncAPIClient() as client:
        ...     response = await client.get(url, cookies=credential.cookies)
    """

    def __init__(self, config: Optional[APIConfig] = None):
        """
        Initialize async API client.

        Args:
            config: API configuration (uses defaults if not provided)
        """
        self._config = config or APIConfig.default()
        self._session: Optional[aiohttp.ClientSession] = None
        self._connector: Optional[aiohttp.TCPConnector] = None
        self._logger = get_logger('zalopy.api')

    @property
    def config(self) -> APIConfig:
        """Get current configuration."""
        return self._config

    async def __aenter__(self) -> 'AsyncAPIClient':
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session is created and open."""
        if self._session is None or self._session.closed:
            self._connector = aiohttp.TCPConnector(
                **self._config.get_connector_kwargs()
            )
            self._session = aiohttp.ClientSession(
                connector=self._connector,
                cookie_jar=aiohttp.DummyCookieJar(),
                **self._config.get_session_kwargs()
            )
        return self._session

    async def close(self):
        """Close client and release resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

        if self._connector and not self._connector.closed:
            await self._connector.close()
        self._connector = None

    async def request(
        self,
        method: str,
        url: str,
        cookies: Optional[CookieJar] = None,
        params: Optional[Mapping[str, Any]] = None,
        data: Any = None,
        json_body: Any = None,
        headers: Optional[Mapping[str, str]] = None
    ) -> APIResponse:
        """
        Perform an HTTP request.

        Args:
            method: HTTP method
            url: Absolute URL
            cookies: Cookie jar to send and to update from ``Set-Cookie``
            params: Query parameters
            data: Form fields or ``aiohttp.FormData``
            json_body: JSON body
            headers: Extra request headers

        Returns:
            Buffered response

        Raises:
            TransientNetworkError: On connection errors and timeouts
        """
        session = await self._ensure_session()
        request_headers = dict(headers or {})
        if cookies:
            cookie_header = cookies.to_header()
            if cookie_header:
                request_headers['Cookie'] = cookie_header

        self._logger.debug(f"{method} {strip_query(url)}")

        try:
            async with session.request(
                method,
                url,
                params=params,
                data=data,
                json=json_body,
                headers=request_headers,
                proxy=self._config.proxy_url
            ) as response:
                text = await response.text()

                if cookies is not None and response.cookies:
                    updated = cookies.update_from_response(
                        response.cookies, default_domain=response.url.host or ''
                    )
                    self._logger.debug(f"Updated {updated} cookie(s) from {strip_query(url)}")

                self._logger.debug(
                    f"HTTP {response.status} from {strip_query(url)} ({len(text)} chars)"
                )
                return APIResponse(
                    status=response.status,
                    text=text,
                    headers=dict(response.headers),
                    url=str(response.url),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._logger.error(f"Network error on {method} {strip_query(url)}: {e!r}")
            raise TransientNetworkError(f"{method} {strip_query(url)} failed: {e!r}")

    async def get(self, url: str, **kwargs) -> APIResponse:
        return await self.request('GET', url, **kwargs)

    async def post(self, url: str, **kwargs) -> APIResponse:
        return await self.request('POST', url, **kwargs)

    async def ws_connect(
        self,
        url: str,
        headers: Mapping[str, str],
        heartbeat: Optional[float] = None
    ) -> aiohttp.ClientWebSocketResponse:
        """
        Open a WebSocket on the shared session.

        Raises:
            AuthExpiredError: If the handshake is rejected with 401/403
            TransientNetworkError: On any other connection failure
        """
        session = await self._ensure_session()
        try:
            return await session.ws_connect(
                url,
                headers=dict(headers),
                heartbeat=heartbeat,
                proxy=self._config.proxy_url
            )
        except aiohttp.WSServerHandshakeError as e:
            if e.status in (401, 403):
                raise AuthExpiredError(f"WebSocket handshake rejected: HTTP {e.status}", e.status)
            raise TransientNetworkError(f"WebSocket handshake failed: HTTP {e.status}", e.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientNetworkError(f"WebSocket connection failed: {e!r}")
