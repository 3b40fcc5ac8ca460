import pytest

from shared.validators import http_base_url, validate_server_url


class TestValidateServerUrl:
    def test_accepts_ws(self):
        assert validate_server_url("ws://localhost:8080") == "ws://localhost:8080"

    def test_accepts_wss(self):
        assert validate_server_url("wss://play.example.com/ws") == "wss://play.example.com/ws"

    def test_strips_whitespace(self):
        assert validate_server_url("  ws://host  ") == "ws://host"

    def test_empty_string_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            validate_server_url("   ")

    def test_http_scheme_raises(self):
        with pytest.raises(ValueError, match="must start with ws:// or wss://"):
            validate_server_url("http://localhost:8080")

    def test_missing_host_raises(self):
        with pytest.raises(ValueError, match="has no host"):
            validate_server_url("ws://")


class TestHttpBaseUrl:
    def test_ws_maps_to_http(self):
        assert http_base_url("ws://localhost:8080") == "http://localhost:8080"

    def test_wss_maps_to_https(self):
        assert http_base_url("wss://play.example.com") == "https://play.example.com"

    def test_trailing_slash_dropped(self):
        assert http_base_url("wss://play.example.com/") == "https://play.example.com"

    def test_invalid_url_raises(self):
        with pytest.raises(ValueError, match="must start with"):
            http_base_url("ftp://example.com")
