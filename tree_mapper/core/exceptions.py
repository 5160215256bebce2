"""TreeMapper exception hierarchy.

All exceptions are TreeMapper-specific. Transport, parser and storage driver
exceptions are wrapped and never exposed raw to callers.
"""

from __future__ import annotations

from typing import Any


class TreeMapperError(Exception):
    """Base exception for all TreeMapper errors."""


# --- Key paths ---


class KeyPathError(TreeMapperError):
    """Raised when a key path does not follow the dotted segment grammar."""

    def __init__(self, key_path: str, detail: str) -> None:
        self.key_path = key_path
        super().__init__(f"Invalid key path '{key_path}': {detail}")


# --- Registry ---


class RegistryError(TreeMapperError):
    """Base for entity registry errors."""


class EntityNotRegisteredError(RegistryError):
    """Raised when an entity name cannot be found in the registry."""

    def __init__(self, entity_name: str) -> None:
        self.entity_name = entity_name
        super().__init__(f"Entity not registered: '{entity_name}'")


class DuplicateEntityError(RegistryError):
    """Raised when two different classes are registered under one name."""

    def __init__(self, entity_name: str, existing: type, new: type) -> None:
        self.entity_name = entity_name
        super().__init__(
            f"Duplicate entity name '{entity_name}': "
            f"{existing.__qualname__} and {new.__qualname__}"
        )


# --- Mapping ---


class MappingError(TreeMapperError):
    """Base for mapping errors."""


class AttributeNotFound(MappingError):
    """A source key path was absent (recorded only by strict mappings)."""

    def __init__(self, key_path: str) -> None:
        self.key_path = key_path
        super().__init__(f"No value found at key path '{key_path}'")


class TypeCoercionFailure(MappingError):
    """A source value could not be coerced to the destination attribute type."""

    def __init__(
        self,
        attribute: str,
        value: Any,
        expected: str,
        source_key_path: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.attribute = attribute
        self.value = value
        self.expected = expected
        self.source_key_path = source_key_path
        message = f"Cannot coerce {value!r} to {expected} for attribute '{attribute}'"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ValidationFailure(MappingError):
    """A persistence context validator rejected an object."""

    def __init__(self, entity_name: str, message: str, attribute: str | None = None) -> None:
        self.entity_name = entity_name
        self.attribute = attribute
        self.message = message
        where = f"{entity_name}.{attribute}" if attribute else entity_name
        super().__init__(f"Validation failed for {where}: {message}")


class FatalMappingConfiguration(MappingError):
    """Raised immediately for a malformed mapping definition."""


class UnmappableContentError(MappingError):
    """Raised when no registered mapping matches the payload."""

    def __init__(self, key_paths: list[str]) -> None:
        self.key_paths = key_paths
        super().__init__(
            f"Unable to find any mappings for the given content. Known key paths: {key_paths}"
        )


class MappingStateError(MappingError):
    """Raised when a mapping operation is performed more than once."""


class AggregateMappingError(MappingError):
    """Every non-fatal failure recorded during one mapping pass."""

    def __init__(self, errors: list[MappingError]) -> None:
        self.errors = list(errors)
        lines = "; ".join(str(e) for e in self.errors)
        super().__init__(f"{len(self.errors)} mapping error(s): {lines}")

    @property
    def failed_attributes(self) -> list[str]:
        """Destination attributes named by the recorded failures."""
        return [
            e.attribute
            for e in self.errors
            if isinstance(e, (TypeCoercionFailure, ValidationFailure)) and e.attribute
        ]


# --- Context ---


class ContextError(TreeMapperError):
    """Base for persistence context errors."""


class CommitError(ContextError):
    """Raised when validation fails while committing a context."""

    def __init__(self, failures: list[ValidationFailure]) -> None:
        self.failures = list(failures)
        super().__init__(f"Commit rejected with {len(self.failures)} validation failure(s)")


class ContextStateError(ContextError):
    """Raised on invalid context state transitions."""

    def __init__(self, current_state: str, attempted_action: str) -> None:
        self.current_state = current_state
        self.attempted_action = attempted_action
        super().__init__(f"Cannot {attempted_action} context in state '{current_state}'")


# --- Loader ---


class LoaderError(TreeMapperError):
    """Base for object loader errors."""


class TransportError(LoaderError):
    """Raised when the transport fails to deliver a response."""


class UnexpectedResponseError(LoaderError):
    """Raised for well-formed responses that cannot be classified for mapping."""

    def __init__(self, status_code: int, content_type: str | None) -> None:
        self.status_code = status_code
        self.content_type = content_type
        super().__init__(
            f"Unexpected response: status {status_code}, content type {content_type!r}"
        )


class ResponseError(LoaderError):
    """Raised for 4xx/5xx responses, carrying messages read from the payload."""

    def __init__(self, status_code: int, messages: list[str]) -> None:
        self.status_code = status_code
        self.messages = messages
        detail = f": {', '.join(messages)}" if messages else ""
        super().__init__(f"HTTP {status_code}{detail}")


class ParseError(LoaderError):
    """Raised when a response body cannot be parsed."""

    def __init__(self, content_type: str, detail: str) -> None:
        self.content_type = content_type
        super().__init__(f"Failed to parse {content_type} payload: {detail}")


class LoaderStateError(LoaderError):
    """Raised when a loader is started more than once."""


class HookError(LoaderError):
    """Raised when a loader hook fails; the original exception is the cause."""

    def __init__(self, hook: str, error: Exception) -> None:
        self.hook = hook
        self.error = error
        super().__init__(f"Loader hook '{hook}' failed: {type(error).__name__}: {error}")
        self.__cause__ = error


# --- Adapter ---


class AdapterError(TreeMapperError):
    """Base for adapter errors."""


class StoreError(AdapterError):
    """Raised on object store failures."""
