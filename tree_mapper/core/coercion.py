"""Scalar coercion from parsed payload values to destination attribute types.

Parsers hand back strings, numbers, booleans and nulls. Destinations expect
richer types, so values are normalized according to the semantic type the
destination field declares.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from tree_mapper.core.enums import AttributeType

_TRUE_STRINGS = frozenset({"true", "t", "yes", "y", "1", "on"})
_FALSE_STRINGS = frozenset({"false", "f", "no", "n", "0", "off"})

# YYYY-MM-DD, optionally followed by a time part and an offset or 'Z'
_ISO_8601_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[T ](?P<time>\d{2}:\d{2}(?::\d{2})?)(?:(?<=\d{2}:\d{2}:\d{2})\.(?P<fraction>\d{1,6}))?"
    r"(?P<offset>Z|[+-]\d{2}:?\d{2})?)?$"
)


class CoercionError(ValueError):
    """Internal signal that a value cannot take the requested type."""


def coerce_value(value: Any, attribute_type: AttributeType) -> Any:
    """Coerce *value* to *attribute_type*.

    ``None`` always passes through so that a null clears the destination.

    Raises:
        CoercionError: If the value cannot represent the requested type.
    """
    if value is None or attribute_type is AttributeType.ANY:
        return value
    try:
        return _COERCERS[attribute_type](value)
    except (ValueError, TypeError, ArithmeticError, InvalidOperation) as e:
        if isinstance(e, CoercionError):
            raise
        raise CoercionError(str(e)) from e


def _to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise CoercionError(f"{type(value).__name__} is not a scalar")


def _to_integer(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if value != int(value):
            raise CoercionError(f"{value} has a fractional part")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            return _to_integer(Decimal(text))
    raise CoercionError(f"{type(value).__name__} is not numeric")


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise CoercionError("booleans are not numbers")
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise CoercionError(f"{type(value).__name__} is not numeric")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise CoercionError("booleans are not numbers")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        return Decimal(value.strip())
    raise CoercionError(f"{type(value).__name__} is not numeric")


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise CoercionError(f"{value!r} is not boolean-like")


def _parse_iso_datetime(text: str) -> datetime:
    match = _ISO_8601_PATTERN.match(text)
    if match is None:
        raise CoercionError(f"'{text}' is not an ISO-8601 timestamp")
    if match["time"] is None:
        return datetime.fromisoformat(match["date"])

    # Rebuilt in the only shape fromisoformat accepts before Python 3.11
    normalized = f"{match['date']}T{match['time']}"
    if match["fraction"]:
        normalized += "." + match["fraction"].ljust(6, "0")
    offset = match["offset"]
    if offset == "Z":
        normalized += "+00:00"
    elif offset:
        normalized += offset if ":" in offset else f"{offset[:3]}:{offset[3:]}"
    return datetime.fromisoformat(normalized)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        raise CoercionError("booleans are not timestamps")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        return _parse_iso_datetime(value.strip())
    raise CoercionError(f"{type(value).__name__} is not a timestamp")


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return _parse_iso_datetime(value.strip()).date()
    raise CoercionError(f"{type(value).__name__} is not a date")


_COERCERS = {
    AttributeType.STRING: _to_string,
    AttributeType.INTEGER: _to_integer,
    AttributeType.FLOAT: _to_float,
    AttributeType.DECIMAL: _to_decimal,
    AttributeType.BOOLEAN: _to_boolean,
    AttributeType.DATETIME: _to_datetime,
    AttributeType.DATE: _to_date,
}
