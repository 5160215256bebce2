"""Client configuration.

ClientConfig is a Pydantic model for type-safe client config. Transports are
resolved by name through an import map so optional HTTP stacks are only
imported when selected.
"""

from __future__ import annotations

import importlib
from typing import Any

from pydantic import BaseModel, Field

from tree_mapper.core.exceptions import AdapterError


class ClientConfig(BaseModel):
    """Configuration for remote object loading."""

    base_url: str
    transport: str = "httpx"
    timeout: float = 30.0
    headers: dict[str, str] = {}
    default_mime_type: str = "application/json"
    # Key path of the error messages in a 4xx/5xx payload
    error_key_path: str = "errors"
    extra: dict[str, Any] = Field(default_factory=dict)


# Transport module mapping: transport name → (module_path, class_name)
_TRANSPORT_MAP: dict[str, tuple[str, str]] = {
    "httpx": ("tree_mapper.adapters.httpx_transport", "HttpxTransport"),
}


def _load_transport(config: ClientConfig) -> Any:
    """Instantiate the transport named by ``config.transport``."""
    name = config.transport.lower()
    if name not in _TRANSPORT_MAP:
        raise AdapterError(f"Unsupported transport: {config.transport}")

    module_path, cls_name = _TRANSPORT_MAP[name]
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)(config)
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Failed to load transport '{config.transport}': {e}") from e
