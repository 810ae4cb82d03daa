"""Tests for client configuration."""
import aiohttp
import pytest

from zalopy.core.api import APIConfig, ProxyConfig, RealtimeConfig


class TestRealtimeConfig:
    """Test suite for RealtimeConfig."""

    def test_defaults(self):
        """Test the default connection settings."""
        config = RealtimeConfig()
        assert config.keepalive_interval == 120.0
        assert config.event_buffer_size == 100
        assert config.max_connections == 50
        assert config.max_crypto_failures == 3

    @pytest.mark.parametrize('attempt,expected', [(0, 30.0), (1, 60.0), (2, 120.0), (3, 240.0), (4, 300.0), (10, 300.0)])
    def test_reconnect_delay_is_capped(self, attempt, expected):
        """Test the exponential backoff and its ceiling."""
        assert RealtimeConfig().reconnect_delay(attempt) == expected


class TestAPIConfig:
    """Test suite for APIConfig."""

    def test_identity_defaults(self):
        """Test the advertised client identity."""
        config = APIConfig.default()
        assert (config.api_type, config.api_version, config.language) == (30, 655, 'vi')
        assert config.proxy_url is None

    def test_proxy_with_credentials(self):
        """Test proxy credentials are embedded in the URL."""
        proxy = ProxyConfig(url='http://proxy:8080', username='u', password='p')
        assert proxy.to_aiohttp_proxy() == 'http://u:p@proxy:8080'
        assert APIConfig.with_proxy('http://proxy:8080').proxy_url == 'http://proxy:8080'

    def test_insecure_disables_ssl(self):
        """Test the insecure preset turns verification off."""
        assert APIConfig.insecure().get_connector_kwargs()['ssl'] is False

    def test_session_kwargs(self):
        """Test headers and timeouts handed to aiohttp."""
        config = APIConfig(extra_headers={'X-Test': '1'})
        kwargs = config.get_session_kwargs()
        assert kwargs['headers']['X-Test'] == '1'
        assert 'Chrome' in kwargs['headers']['User-Agent']
        assert isinstance(kwargs['timeout'], aiohttp.ClientTimeout)
