"""Response body parsers, registered by MIME type."""

from __future__ import annotations

import json
from typing import Any

from tree_mapper.adapters.protocol import Parser
from tree_mapper.core.exceptions import ParseError

JSON_MIME_TYPE = "application/json"


def normalize_mime_type(content_type: str | None) -> str | None:
    """``"application/json; charset=utf-8"`` -> ``"application/json"``."""
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower() or None


class JsonParser:
    """Parses JSON bodies into dicts, lists and scalars."""

    mime_type = JSON_MIME_TYPE

    def parse(self, body: bytes) -> Any:
        try:
            return json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise ParseError(self.mime_type, str(e)) from e


class ParserRegistry:
    """Parsers keyed by MIME type.

    Args:
        parsers: Initial ``{mime_type: parser}`` entries. A JSON parser is
            registered when omitted.
    """

    def __init__(self, parsers: dict[str, Parser] | None = None) -> None:
        self._parsers: dict[str, Parser] = {}
        if parsers is None:
            parsers = {JSON_MIME_TYPE: JsonParser()}
        for mime_type, parser in parsers.items():
            self.register(mime_type, parser)

    def register(self, mime_type: str, parser: Parser) -> None:
        normalized = normalize_mime_type(mime_type)
        if normalized is None:
            raise ValueError("MIME type must not be empty")
        self._parsers[normalized] = parser

    def parser_for(self, content_type: str | None) -> Parser | None:
        """Parser for a Content-Type header value, ignoring its parameters."""
        normalized = normalize_mime_type(content_type)
        if normalized is None:
            return None
        return self._parsers.get(normalized)

    def __contains__(self, content_type: object) -> bool:
        return isinstance(content_type, str) and self.parser_for(content_type) is not None

    @property
    def mime_types(self) -> list[str]:
        return sorted(self._parsers)
