"""
MES Dashboard Store — History Recorder

Appends audit entries ({user, time, value}) to a record's embedded history
list when a tracked field changes. Entries are never reordered or removed.
"""
import datetime
import logging
from typing import Any, Dict, Optional

from .kinds import EntityKind, TrackMode

logger = logging.getLogger("store.history")

UNKNOWN_USER = "unknown"


def _ts(now: Optional[datetime.datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-01-02T03:04:05.678Z"""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return now.astimezone(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def make_entry(user: Any, value: Any, now: Optional[datetime.datetime] = None) -> Dict[str, Any]:
    return {
        "user": user or UNKNOWN_USER,
        "time": _ts(now),
        "value": value,
    }


def record(kind: EntityKind, entity: Dict[str, Any], payload: Dict[str, Any],
           now: Optional[datetime.datetime] = None) -> Optional[Dict[str, Any]]:
    """
    Append at most one history entry to entity["history"] (in place).

    ALWAYS mode records payload[tracked_field], or the entity's current value
    when the payload omits it. PRESENT mode records only when the payload
    carries the tracked field. Returns the new entry, or None.
    """
    if kind.track_mode == TrackMode.NONE:
        return None

    field_name = kind.tracked_field
    if kind.track_mode == TrackMode.PRESENT and field_name not in payload:
        return None

    if field_name in payload:
        value = payload[field_name]
    else:
        value = entity.get(field_name)

    history = entity.get("history")
    if not isinstance(history, list):
        history = []
    else:
        history = list(history)

    entry = make_entry(payload.get("user"), value, now)
    # Wall clock may step backwards; keep the history ordered.
    if history and isinstance(history[-1], dict):
        last_time = history[-1].get("time")
        if isinstance(last_time, str) and last_time > entry["time"]:
            entry["time"] = last_time

    history.append(entry)
    entity["history"] = history
    logger.debug(f"[History] {kind.name} {entity.get('id')}: {field_name}={value!r} by {entry['user']}")
    return entry
