"""
MES Dashboard Store — Core engine

EntityStore owns one in-memory collection and its backing document. Every
mutating call replaces whole records and then rewrites the full document.
Other modules reach the collections only through get_store().
"""
import copy
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.errors import EntityNotFound, StorageReadFailure, StorageWriteFailure

from . import history
from .documents import load_document, save_document
from .kinds import ALL_KINDS, KINDS_BY_NAME, EntityKind, merge_fields

logger = logging.getLogger("store.engine")


class IdGenerator:
    """
    Millisecond-timestamp ids that never repeat.

    Returns max(now_ms, last + 1), so two creations inside the same
    millisecond still get distinct, increasing ids.
    """

    def __init__(self, last_id: int = 0, clock=None):
        self._last = last_id
        self._clock = clock or (lambda: int(time.time() * 1000))

    def seed(self, ids):
        numeric = [i for i in ids if isinstance(i, int) and not isinstance(i, bool)]
        if numeric:
            self._last = max(self._last, max(numeric))

    def next_id(self) -> int:
        self._last = max(self._clock(), self._last + 1)
        return self._last


class EntityStore:
    """In-memory collection of one entity kind, persisted as a JSON array."""

    def __init__(self, kind: EntityKind, path: Path, id_generator: IdGenerator = None):
        self.kind = kind
        self.path = Path(path)
        self._records: List[Dict[str, Any]] = []
        self._ids = id_generator or IdGenerator()

    # ---- Lifecycle ----

    def load(self) -> int:
        """Load the document. A malformed document is treated as empty."""
        try:
            records = load_document(self.path, create_if_missing=self.kind.create_missing_document)
        except StorageReadFailure as e:
            logger.error(f"[Store] {self.kind.name}: failed to load {self.path.name}, starting empty: {e.cause}")
            records = []

        self._records = [r for r in records if isinstance(r, dict)]
        self._ids.seed(r.get("id") for r in self._records)
        logger.info(f"[Store] {self.kind.name}: loaded {len(self._records)} records from {self.path}")
        return len(self._records)

    def persist(self) -> bool:
        """Rewrite the document. Failures are logged; memory stays ahead of disk."""
        try:
            save_document(self.path, self._records)
            return True
        except StorageWriteFailure as e:
            logger.error(f"[Store] {self.kind.name}: failed to save {self.path.name}: {e.cause}")
            return False

    # ---- Queries ----

    def list(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._records)

    def count(self) -> int:
        return len(self._records)

    def _index_of(self, entity_id: int) -> int:
        for idx, rec in enumerate(self._records):
            if _same_id(rec.get("id"), entity_id):
                return idx
        return -1

    def get(self, entity_id: int) -> Optional[Dict[str, Any]]:
        idx = self._index_of(entity_id)
        return copy.deepcopy(self._records[idx]) if idx >= 0 else None

    # ---- Mutations ----

    def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        entity = {"id": self._ids.next_id()}
        for key in self.kind.create_fields:
            if key in fields:
                entity[key] = fields[key]
        entity.update(self.kind.new_defaults())

        self._records.append(entity)
        self.persist()
        logger.info(f"[Store] {self.kind.name} {entity['id']} created")
        return copy.deepcopy(entity)

    def update(self, entity_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge allow-listed fields from payload into the record.

        Raises EntityNotFound when no record has entity_id.
        """
        idx = self._index_of(entity_id)
        if idx < 0:
            raise EntityNotFound(self.kind.name, entity_id)

        payload = copy.deepcopy(payload)
        updated = merge_fields(self.kind, self._records[idx], payload)
        if self.kind.tracks_history:
            history.record(self.kind, updated, payload)

        self._records[idx] = updated
        self.persist()
        logger.info(f"[Store] {self.kind.name} {entity_id} updated")
        return copy.deepcopy(updated)

    def delete(self, entity_id: int) -> bool:
        """Remove the record if present. Unknown ids are a no-op."""
        before = len(self._records)
        self._records = [r for r in self._records if not _same_id(r.get("id"), entity_id)]
        removed = len(self._records) != before
        self.persist()
        if removed:
            logger.info(f"[Store] {self.kind.name} {entity_id} deleted")
        return removed


def coerce_id(raw: Any) -> Optional[int]:
    """
    Integer id from a path segment or message field, or None.

    Fractional, infinite and NaN values can never match a record.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        try:
            return int(raw)
        except ValueError:
            pass
        try:
            raw = float(raw)
        except ValueError:
            return None
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    return None


def _same_id(stored: Any, entity_id: int) -> bool:
    # Hand-edited documents sometimes carry ids as numeric strings.
    if isinstance(stored, bool):
        return False
    if isinstance(stored, (int, float)):
        return stored == entity_id
    if isinstance(stored, str):
        try:
            return int(stored) == entity_id
        except ValueError:
            return False
    return False


# ============================================================================
# Store registry (one store per kind, owned by this module)
# ============================================================================

_stores: Dict[str, EntityStore] = {}


def init_stores(data_dir: Path) -> Dict[str, EntityStore]:
    """Create and load a store for every entity kind."""
    data_dir = Path(data_dir)
    _stores.clear()
    for kind in ALL_KINDS:
        store = EntityStore(kind, data_dir / kind.document)
        store.load()
        _stores[kind.name] = store
    return dict(_stores)


def get_store(kind_name: str) -> EntityStore:
    if kind_name not in KINDS_BY_NAME:
        raise KeyError(f"Unknown entity kind: {kind_name}")
    store = _stores.get(kind_name)
    if store is None:
        raise RuntimeError("Stores not initialized; call init_stores() first")
    return store


def get_counts() -> Dict[str, int]:
    return {name: store.count() for name, store in _stores.items()}
