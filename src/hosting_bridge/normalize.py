"""
Helpers for turning loosely-shaped backend payloads into canonical values.

Backends disagree on key names ('ip_address' vs 'ip' vs 'public_ip'), on
date formats and on how booleans are spelled. Everything here is total:
bad input yields the supplied default, never an exception.
"""

from collections.abc import Mapping
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

_MISSING = object()

_FALSE_STRINGS = frozenset({'', '0', 'false', 'no', 'off', 'n', 'none', 'null'})


def first_of(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the value of the first key present with a non-None value.

    Keys are tried in priority order, e.g. ``first_of(d, 'id', 'server_id')``.
    """
    for key in keys:
        value = data.get(key, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a datetime from a datetime, an ISO-ish string or a Unix timestamp.

    Naive values are taken to be UTC so that every result is comparable.
    Unparsable input returns None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = datetime.strptime(text, '%Y-%m-%d %H:%M:%S %z')
            except ValueError:
                return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)

    return None


def to_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(value)) if isinstance(value, str) else int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_str(value: Any, default: Optional[str] = None) -> Optional[str]:
    if value is None:
        return default
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def to_str_tuple(value: Any) -> Tuple[str, ...]:
    """Coerce a scalar or iterable into an ordered tuple of unique strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[Any] = [value] if value else []
    elif isinstance(value, Mapping):
        items = value.values()
    else:
        try:
            items = list(value)
        except TypeError:
            items = [value]

    seen: Dict[str, None] = {}
    for item in items:
        if item is None:
            continue
        text = str(item)
        if text:
            seen.setdefault(text, None)
    return tuple(seen)


def to_mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def serialize_value(value: Any) -> Any:
    """Flatten a value for JSON output.

    datetimes become ISO-8601 strings, enums their value, entities their own
    ``to_dict()``, and sets are emitted sorted so output is stable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {key: serialize_value(item) for key, item in value.items()}
    if isinstance(value, (set, frozenset)):
        return [serialize_value(item) for item in sorted(value, key=str)]
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    return value


def human_readable_bytes(size: Optional[int]) -> Optional[str]:
    if size is None:
        return None
    units: List[str] = ['B', 'KB', 'MB', 'GB', 'TB']
    amount = float(size)
    index = 0
    while amount >= 1024 and index < len(units) - 1:
        amount /= 1024
        index += 1
    rounded = round(amount, 2)
    if rounded == int(rounded):
        rounded = int(rounded)
    return f"{rounded} {units[index]}"
