"""
Forward-only schema migration for persisted discovery records.

Persisted data is never trusted: it is parsed into a plain dictionary,
upgraded step by step to the current shape, then copied field by field into
a DiscoveryState. Fields that are missing or of the wrong type keep their
default value, so the result always carries the full current field set.

A missing, negative or non-integer ``version`` is treated as version 0, the
oldest known shape. There is no downgrade path.
"""

import json
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter, ValidationError

from ..exceptions import CorruptPersistedStateError
from .models import SCHEMA_VERSION, DiscoveryState

# Version 0 records (written before the version field existed) only carried these
V0_FIELDS = ("discoveries", "visitCount", "firstVisitDate")

_LIST_FIELDS = {"discoveries", "constellations", "games_completed", "terminal_commands"}
_COUNT_FIELDS = {"visit_count", "loop_count", "total_clicked_stars"}
_DATE_FIELDS = {"first_visit_date", "last_visit_date", "session_start"}
_BOOL_FIELDS = {"audio_enabled"}

_DATETIME_ADAPTER = TypeAdapter(datetime)
_INVALID = object()


def _upgrade_v0(record: dict[str, Any]) -> dict[str, Any]:
    return {key: record[key] for key in V0_FIELDS if key in record}


# Keyed by source version; each step returns a record one version newer
MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _upgrade_v0,
}


def parse_record(text: str) -> dict[str, Any]:
    """Parse a serialized record into a loosely-typed dictionary.

    Raises:
        CorruptPersistedStateError: If the text is not a JSON object
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise CorruptPersistedStateError(f"Persisted state is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise CorruptPersistedStateError(
            f"Persisted state must be a JSON object, got {type(data).__name__}"
        )
    return data


def record_version(record: Mapping[str, Any]) -> int:
    """Schema version of a raw record; unknown or missing means 0."""
    version = record.get("version")
    if isinstance(version, bool) or not isinstance(version, int) or version < 0:
        return 0
    return version


def _coerce_field(name: str, value: Any) -> Any:
    if name in _LIST_FIELDS:
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return list(dict.fromkeys(value))
        return _INVALID
    if name in _COUNT_FIELDS:
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
        return _INVALID
    if name in _BOOL_FIELDS:
        return value if isinstance(value, bool) else _INVALID
    if name in _DATE_FIELDS:
        if not isinstance(value, str):
            return _INVALID
        try:
            parsed = _DATETIME_ADAPTER.validate_python(value)
        except ValidationError:
            return _INVALID
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return _INVALID


def migrate(raw: Mapping[str, Any], defaults: DiscoveryState) -> DiscoveryState:
    """Produce a fully-populated current-schema state from a raw record.

    Pure: neither ``raw`` nor ``defaults`` is modified. Migrating a result
    again yields an equal state.

    Args:
        raw: Loosely-typed persisted record (camelCase keys)
        defaults: State supplying every value the record cannot

    Returns:
        A DiscoveryState at SCHEMA_VERSION
    """
    record = dict(raw)
    version = record_version(record)
    while version < SCHEMA_VERSION:
        record = MIGRATIONS[version](record)
        version += 1

    values = defaults.model_dump()
    for name, field in DiscoveryState.model_fields.items():
        if name == "version":
            continue
        key = field.alias or name
        if key not in record:
            continue
        coerced = _coerce_field(name, record[key])
        if coerced is not _INVALID:
            values[name] = coerced

    values["version"] = SCHEMA_VERSION
    return DiscoveryState(**values)


__all__ = [
    "MIGRATIONS",
    "V0_FIELDS",
    "migrate",
    "parse_record",
    "record_version",
]
