"""
MES Dashboard Store — JSON document persistence

Each entity kind lives in one pretty-printed JSON array on disk. Documents
are always rewritten whole; there are no partial or incremental writes.
"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, List

from app.errors import StorageReadFailure, StorageWriteFailure

logger = logging.getLogger("store.documents")


def load_document(path: Path, create_if_missing: bool = False) -> List[Dict]:
    """
    Read a JSON array document.

    A missing file is an empty collection. With create_if_missing an empty
    document is written so the file exists for later inspection.
    Raises StorageReadFailure when the file is unreadable or not a JSON array.
    """
    path = Path(path)
    if not path.exists():
        if create_if_missing:
            try:
                save_document(path, [])
            except StorageWriteFailure as e:
                logger.error(f"[Store] Could not create {path.name}: {e.cause}")
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise StorageReadFailure(path, e)

    if not isinstance(data, list):
        raise StorageReadFailure(path, ValueError(f"expected a JSON array, got {type(data).__name__}"))
    return data


def save_document(path: Path, records: List[Dict]):
    """
    Overwrite a document with the full collection.

    The JSON is written to a sibling temp file and swapped in with os.replace.
    Raises StorageWriteFailure on any I/O or serialization error.
    """
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        payload = json.dumps(records, indent=2, ensure_ascii=False)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_path, path)
    except (OSError, TypeError, ValueError) as e:
        try:
            tmp_path.unlink()
        except OSError:
            pass
        raise StorageWriteFailure(path, e)
