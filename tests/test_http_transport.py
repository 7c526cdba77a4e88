"""Tests for the requests-backed provider transport (no live network)."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from chainchirp.core.errors import ProviderHTTPError
from chainchirp.providers.base import ProviderSpec
from chainchirp.providers.http import RequestsTransport, _encode_params, build_url, network_error_code
from tests.fakes import make_spec

KEYED = ProviderSpec(
    key="keyed",
    name="Keyed",
    base_url="https://keyed.example/v1/",
    rate_limit_per_minute=10,
    priority=1,
    requires_auth=True,
    auth_headers={"X-Api-Key": "CHAINCHIRP_TEST_SECRET"},
)


def _response(status=200, body=None, json_error=False):
    resp = MagicMock()
    resp.status_code = status
    if json_error:
        resp.json.side_effect = ValueError("Expecting value")
    else:
        resp.json.return_value = body
    return resp


class TestHelpers:
    def test_build_url_joins_once(self):
        assert build_url(KEYED, "/quotes") == "https://keyed.example/v1/quotes"
        assert build_url(make_spec("a", 1), "ping") == "https://a.example/api/ping"

    def test_build_url_absolute_passes_through(self):
        url = "https://api.exchange.coinbase.com/products/BTC-USD/stats"
        assert build_url(KEYED, url) == url

    def test_encode_params(self):
        assert _encode_params(
            {"a": None, "b": True, "c": False, "d": ["usd", "eur"], "e": 7}
        ) == {"b": "true", "c": "false", "d": "usd,eur", "e": 7}
        assert _encode_params(None) == {}

    def test_network_error_codes(self):
        assert network_error_code(requests.Timeout("slow")) == "ETIMEDOUT"
        assert network_error_code(requests.ConnectionError(ConnectionResetError(104, "reset"))) == "ECONNRESET"
        assert network_error_code(requests.ConnectionError("Name or service not known")) == "ENOTFOUND"
        assert network_error_code(requests.TooManyRedirects("loop")) == "EREQUEST"


class TestRequestsTransport:
    def test_headers_include_secret_from_env(self, monkeypatch):
        monkeypatch.setenv("CHAINCHIRP_TEST_SECRET", "s3cret")
        headers = RequestsTransport(user_agent="UA/1").headers_for(KEYED)

        assert headers["X-Api-Key"] == "s3cret"
        assert headers["User-Agent"] == "UA/1"
        assert headers["Accept"] == "application/json"

    def test_headers_fall_back_to_demo_key(self, monkeypatch):
        monkeypatch.delenv("CHAINCHIRP_TEST_SECRET", raising=False)
        assert RequestsTransport().headers_for(KEYED)["X-Api-Key"] == "DEMO_KEY"

    def test_session_cached_per_provider(self):
        transport = RequestsTransport()
        a, b = make_spec("a", 1), make_spec("b", 2)

        assert transport.session_for(a) is transport.session_for(a)
        assert transport.session_for(a) is not transport.session_for(b)
        transport.close()

    @patch.object(requests.Session, "get")
    def test_get_success(self, mock_get):
        mock_get.return_value = _response(body={"bitcoin": {"usd": 1.0}})
        transport = RequestsTransport(timeout_s=4.0)

        body = transport.get(make_spec("a", 1), "/simple/price", {"ids": "bitcoin", "include_24hr_vol": True})

        assert body == {"bitcoin": {"usd": 1.0}}
        mock_get.assert_called_once_with(
            "https://a.example/api/simple/price",
            params={"ids": "bitcoin", "include_24hr_vol": "true"},
            timeout=4.0,
        )

    @patch.object(requests.Session, "get")
    def test_per_call_timeout(self, mock_get):
        mock_get.return_value = _response(body={})
        RequestsTransport(timeout_s=10.0).get(make_spec("a", 1), "/ping", timeout=2.0)
        assert mock_get.call_args.kwargs["timeout"] == 2.0

    @patch.object(requests.Session, "get")
    def test_http_status_error(self, mock_get):
        mock_get.return_value = _response(status=503)

        with pytest.raises(ProviderHTTPError) as excinfo:
            RequestsTransport().get(make_spec("a", 1), "/simple/price")

        assert excinfo.value.status == 503
        assert excinfo.value.provider == "a"
        assert excinfo.value.code is None

    @patch.object(requests.Session, "get")
    def test_timeout_becomes_network_code(self, mock_get):
        mock_get.side_effect = requests.Timeout("read timed out")

        with pytest.raises(ProviderHTTPError) as excinfo:
            RequestsTransport().get(make_spec("a", 1), "/simple/price")

        assert excinfo.value.code == "ETIMEDOUT"
        assert excinfo.value.status is None
        assert "ETIMEDOUT" in str(excinfo.value)

    @patch.object(requests.Session, "get")
    def test_non_json_body(self, mock_get):
        mock_get.return_value = _response(json_error=True)

        with pytest.raises(ProviderHTTPError, match="non-JSON"):
            RequestsTransport().get(make_spec("a", 1), "/simple/price")
