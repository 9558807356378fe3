"""Tests for rate limiting and client IP extraction (server/nftscout/core/rate_limit.py)."""

import json
from unittest.mock import MagicMock, patch

import pytest
from starlette.responses import JSONResponse

from nftscout.core.rate_limit import (
    _is_trusted_proxy,
    _trusted_networks,
    get_client_ip,
    rate_limit_exceeded_handler,
)


@pytest.fixture(autouse=True)
def _clear_cache():
    """Clear the lru_cache between tests so each test controls its own config."""
    _trusted_networks.cache_clear()
    yield
    _trusted_networks.cache_clear()


def _make_settings(trusted_proxies: str):
    settings = MagicMock()
    settings.trusted_proxies = trusted_proxies
    return settings


def _make_request(*, client_host: str = "10.0.0.1", headers: dict | None = None):
    request = MagicMock()
    request.client = MagicMock()
    request.client.host = client_host
    request.headers = headers or {}
    # slowapi's get_remote_address reads request.client.host
    return request


class TestTrustedNetworks:
    def test_parses_ips_and_cidrs(self):
        with patch(
            "nftscout.core.rate_limit.get_settings",
            return_value=_make_settings("127.0.0.1, ::1, 172.16.0.0/12"),
        ):
            networks = _trusted_networks()
        assert [str(n) for n in networks] == ["127.0.0.1/32", "::1/128", "172.16.0.0/12"]

    def test_empty_string(self):
        with patch("nftscout.core.rate_limit.get_settings", return_value=_make_settings("")):
            assert _trusted_networks() == ()

    def test_results_are_cached(self):
        with patch(
            "nftscout.core.rate_limit.get_settings", return_value=_make_settings("127.0.0.1")
        ) as mock_get:
            _trusted_networks()
            _trusted_networks()
            mock_get.assert_called_once()


class TestIsTrustedProxy:
    def test_exact_and_cidr_match(self):
        with patch(
            "nftscout.core.rate_limit.get_settings",
            return_value=_make_settings("127.0.0.1,172.16.0.0/12"),
        ):
            assert _is_trusted_proxy("127.0.0.1") is True
            assert _is_trusted_proxy("172.18.0.1") is True
            assert _is_trusted_proxy("10.0.0.1") is False

    def test_invalid_ip_returns_false(self):
        with patch(
            "nftscout.core.rate_limit.get_settings",
            return_value=_make_settings("172.16.0.0/12"),
        ):
            assert _is_trusted_proxy("not-an-ip") is False


class TestGetClientIp:
    def test_returns_direct_ip_when_untrusted(self):
        """Untrusted peer: X-Forwarded-For could be spoofed, so it is ignored."""
        with patch(
            "nftscout.core.rate_limit.get_settings",
            return_value=_make_settings("127.0.0.1"),
        ):
            request = _make_request(
                client_host="10.0.0.99", headers={"X-Forwarded-For": "5.6.7.8"}
            )
            assert get_client_ip(request) == "10.0.0.99"

    def test_uses_first_forwarded_hop_from_trusted_proxy(self):
        with patch(
            "nftscout.core.rate_limit.get_settings",
            return_value=_make_settings("172.16.0.0/12"),
        ):
            request = _make_request(
                client_host="172.18.0.2",
                headers={"X-Forwarded-For": "198.51.100.42, 172.18.0.1"},
            )
            assert get_client_ip(request) == "198.51.100.42"

    def test_trusted_proxy_without_header(self):
        with patch(
            "nftscout.core.rate_limit.get_settings",
            return_value=_make_settings("127.0.0.1"),
        ):
            assert get_client_ip(_make_request(client_host="127.0.0.1")) == "127.0.0.1"


class TestRateLimitExceededHandler:
    def _make_exc(self):
        exc = MagicMock()
        exc.detail = "5 per 1 minute"
        return exc

    def test_returns_429_with_error_body(self):
        response = rate_limit_exceeded_handler(MagicMock(), self._make_exc())
        assert isinstance(response, JSONResponse)
        assert response.status_code == 429
        body = json.loads(response.body)
        assert body["error"] == "Rate limit exceeded. Please try again later."
        assert body["details"] == "5 per 1 minute"

    def test_response_has_retry_after_header(self):
        response = rate_limit_exceeded_handler(MagicMock(), self._make_exc())
        assert response.headers["retry-after"] == "60"
