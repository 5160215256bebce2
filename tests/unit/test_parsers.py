"""Unit tests for parsers and the parser registry."""

from __future__ import annotations

from typing import Any

import pytest

from tree_mapper.adapters.protocol import Parser
from tree_mapper.core.exceptions import ParseError
from tree_mapper.core.parsers import JsonParser, ParserRegistry, normalize_mime_type


class TextParser:
    def parse(self, body: bytes) -> Any:
        return {"text": body.decode()}


class TestJsonParser:
    def test_parses_json(self) -> None:
        assert JsonParser().parse(b'{"a": [1, null]}') == {"a": [1, None]}

    def test_invalid_json(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            JsonParser().parse(b"<html>")
        assert exc_info.value.content_type == "application/json"

    def test_satisfies_protocol(self) -> None:
        assert isinstance(JsonParser(), Parser)


class TestParserRegistry:
    def test_json_registered_by_default(self) -> None:
        registry = ParserRegistry()
        assert isinstance(registry.parser_for("application/json"), JsonParser)
        assert registry.mime_types == ["application/json"]

    def test_content_type_parameters_are_ignored(self) -> None:
        registry = ParserRegistry()
        assert registry.parser_for("Application/JSON; charset=utf-8") is not None
        assert "application/json; charset=utf-8" in registry

    def test_unknown_mime_type(self) -> None:
        registry = ParserRegistry()
        assert registry.parser_for("text/html") is None
        assert registry.parser_for(None) is None

    def test_register_custom_parser(self) -> None:
        registry = ParserRegistry({"text/plain": TextParser()})
        assert registry.parser_for("application/json") is None
        assert registry.parser_for("text/plain").parse(b"hi") == {"text": "hi"}

    def test_empty_mime_type_rejected(self) -> None:
        with pytest.raises(ValueError):
            ParserRegistry().register("", JsonParser())

    def test_normalize_mime_type(self) -> None:
        assert normalize_mime_type(" text/HTML ;q=1") == "text/html"
        assert normalize_mime_type("") is None
