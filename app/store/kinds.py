# ============================================================================
# MES Dashboard Store — Entity kind definitions
# ============================================================================
# Equipment, process stage ("processTitle") and line ("lineName") share one
# store implementation; everything that differs between them is declared here.
# ============================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from app import config


class TrackMode(str, Enum):
    """When an update appends a history entry."""
    NONE = "none"
    ALWAYS = "always"      # every update; value falls back to the current field
    PRESENT = "present"    # only when the tracked field is in the request


# ---- Field validators (a field is merged only when its validator accepts) ----

def any_value(value: Any) -> bool:
    return True


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_string(value: Any) -> bool:
    return isinstance(value, str)


def is_list(value: Any) -> bool:
    return isinstance(value, list)


def is_truthy(value: Any) -> bool:
    return bool(value)


@dataclass(frozen=True)
class EntityKind:
    name: str
    document: str
    route: str
    create_fields: Tuple[str, ...]
    update_rules: Dict[str, Callable[[Any], bool]]
    defaults: Dict[str, Any] = field(default_factory=dict)
    tracked_field: Optional[str] = None
    track_mode: TrackMode = TrackMode.NONE
    create_missing_document: bool = False
    broadcasts: bool = False

    @property
    def tracks_history(self) -> bool:
        return self.track_mode != TrackMode.NONE

    def new_defaults(self) -> Dict[str, Any]:
        """Fresh copies of the creation defaults (lists are never shared)."""
        return {k: (list(v) if isinstance(v, list) else v) for k, v in self.defaults.items()}


EQUIPMENT = EntityKind(
    name="equipment",
    document=config.EQUIPMENT_DOCUMENT,
    route="/api/equipments",
    create_fields=("name", "iconUrl", "x", "y"),
    update_rules={
        "name": any_value,
        "iconUrl": any_value,
        "status": any_value,
        "x": is_number,
        "y": is_number,
        "maintenanceHistory": is_list,
    },
    defaults={"status": "idle", "history": []},
    tracked_field="status",
    track_mode=TrackMode.ALWAYS,
    broadcasts=True,
)

PROCESS_STAGE = EntityKind(
    name="processTitle",
    document=config.PROCESS_DOCUMENT,
    route="/api/processTitles",
    create_fields=("title", "x", "y"),
    update_rules={
        "title": is_string,
        "x": is_number,
        "y": is_number,
        "yield": any_value,
        "secondField": any_value,
        "maintenanceHistory": is_list,
        "materialNames": is_list,
        "lastSaved": is_truthy,
    },
    defaults={"history": []},
    tracked_field="yield",
    track_mode=TrackMode.PRESENT,
    create_missing_document=True,
)

LINE = EntityKind(
    name="lineName",
    document=config.LINE_DOCUMENT,
    route="/api/lineNames",
    create_fields=("name", "x", "y"),
    update_rules={
        "name": is_string,
        "x": is_number,
        "y": is_number,
    },
    create_missing_document=True,
)

ALL_KINDS = (EQUIPMENT, PROCESS_STAGE, LINE)
KINDS_BY_NAME = {k.name: k for k in ALL_KINDS}


def merge_fields(kind: EntityKind, record: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of record with the allow-listed, type-valid payload fields
    applied. Absent or wrongly typed fields keep their previous value.
    """
    merged = dict(record)
    for key, accepts in kind.update_rules.items():
        if key in payload and accepts(payload[key]):
            merged[key] = payload[key]
    return merged
