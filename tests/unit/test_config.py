"""Unit tests for ClientConfig and transport loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tree_mapper.adapters.httpx_transport import HttpxTransport
from tree_mapper.core.config import ClientConfig, _load_transport
from tree_mapper.core.exceptions import AdapterError


class TestClientConfig:
    def test_defaults(self) -> None:
        config = ClientConfig(base_url="https://api.example.com")
        assert config.transport == "httpx"
        assert config.timeout == 30.0
        assert config.default_mime_type == "application/json"
        assert config.error_key_path == "errors"
        assert config.headers == {}

    def test_base_url_required(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig()  # type: ignore[call-arg]

    def test_timeout_is_validated(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(base_url="x", timeout="soon")  # type: ignore[arg-type]


class TestLoadTransport:
    def test_loads_httpx_transport(self) -> None:
        transport = _load_transport(ClientConfig(base_url="https://api.example.com", transport="HTTPX"))
        assert isinstance(transport, HttpxTransport)
        assert transport.config.base_url == "https://api.example.com"

    def test_unknown_transport(self) -> None:
        with pytest.raises(AdapterError, match="Unsupported transport"):
            _load_transport(ClientConfig(base_url="x", transport="carrier-pigeon"))
