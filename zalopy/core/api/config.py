"""
API configuration module.

Dataclass configuration for the HTTP client, the QR login flow and the
real-time connection manager.
"""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import ssl

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36'
)


@dataclass
class ProxyConfig:
    """
    Proxy configuration.

    Supports HTTP and HTTPS proxies.
    """
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def to_aiohttp_proxy(self) -> Optional[str]:
        """Convert to aiohttp proxy format."""
        if not self.url:
            return None

        if self.username and self.password and '://' in self.url:
            protocol, rest = self.url.split('://', 1)
            return f"{protocol}://{self.username}:{self.password}@{rest}"

        return self.url


@dataclass
class SSLConfig:
    """SSL/TLS configuration."""
    verify: bool = True
    ca_file: Optional[str] = None
    check_hostname: bool = True

    def create_ssl_context(self) -> Any:
        """Create SSL context from configuration (False disables verification)."""
        if not self.verify:
            return False

        context = ssl.create_default_context()
        if self.ca_file:
            context.load_verify_locations(self.ca_file)
        context.check_hostname = self.check_hostname
        return context


@dataclass
class TimeoutConfig:
    """HTTP timeouts in seconds."""
    total: float = 120.0
    connect: float = 30.0
    sock_read: float = 60.0
    sock_connect: float = 30.0

    def to_aiohttp_timeout(self):
        """Convert to aiohttp ClientTimeout."""
        import aiohttp
        return aiohttp.ClientTimeout(
            total=self.total,
            connect=self.connect,
            sock_read=self.sock_read,
            sock_connect=self.sock_connect
        )


@dataclass
class LoginConfig:
    """QR login handshake settings."""
    poll_interval: float = 2.0  # between waiting-scan/waiting-confirm polls
    phase_timeout: float = 60.0  # per polling phase
    qr_session_ttl: int = 180  # SessionStore TTL, renewed on every poll


@dataclass
class RealtimeConfig:
    """Real-time connection settings."""
    keepalive_interval: float = 120.0  # empty text frame
    heartbeat: float = 25.0  # native WebSocket ping
    reconnect_initial_delay: float = 30.0
    reconnect_max_delay: float = 300.0
    reconnect_multiplier: float = 2.0
    idle_grace_period: float = 300.0
    event_buffer_size: int = 100
    max_connections: int = 50
    max_crypto_failures: int = 3

    def reconnect_delay(self, attempt: int) -> float:
        """Calculate the reconnect delay for a given consecutive failure count."""
        delay = self.reconnect_initial_delay * (self.reconnect_multiplier ** attempt)
        return min(delay, self.reconnect_max_delay)


@dataclass
class APIConfig:
    """
    Complete client configuration.

    Centralizes all options for the HTTP client, login flow and real-time
    connections.
    """
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = 'vi-VN,vi;q=0.9,en-US;q=0.8,en;q=0.7'

    # Client identity advertised to the remote platform
    api_type: int = 30
    api_version: int = 655
    language: str = 'vi'
    computer_name: str = 'Web'

    keepalive: bool = True

    # Sub-configurations
    proxy: Optional[ProxyConfig] = None
    ssl: SSLConfig = field(default_factory=SSLConfig)
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    login: LoginConfig = field(default_factory=LoginConfig)
    realtime: RealtimeConfig = field(default_factory=RealtimeConfig)

    extra_headers: Dict[str, str] = field(default_factory=dict)

    # Connection pool settings
    limit_per_host: int = 10
    limit: int = 100

    @classmethod
    def default(cls) -> 'APIConfig':
        """Create default configuration."""
        return cls()

    @classmethod
    def with_proxy(cls, proxy_url: str, **kwargs) -> 'APIConfig':
        """Create configuration with proxy."""
        return cls(proxy=ProxyConfig(url=proxy_url), **kwargs)

    @classmethod
    def insecure(cls, **kwargs) -> 'APIConfig':
        """Create configuration with SSL verification disabled."""
        return cls(ssl=SSLConfig(verify=False, check_hostname=False), **kwargs)

    @property
    def proxy_url(self) -> Optional[str]:
        return self.proxy.to_aiohttp_proxy() if self.proxy else None

    def get_connector_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp TCPConnector."""
        return {
            'limit': self.limit,
            'limit_per_host': self.limit_per_host,
            'ssl': self.ssl.create_ssl_context(),
        }

    def get_session_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp ClientSession."""
        headers = {
            'User-Agent': self.user_agent,
            'Accept-Language': self.accept_language,
            **self.extra_headers
        }

        return {
            'headers': headers,
            'timeout': self.timeout.to_aiohttp_timeout(),
        }
