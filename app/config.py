# ============================================================================
# MES Dashboard — Configuration
# ============================================================================
# Fixed defaults with a handful of environment overrides.
# PORT is the only override a production deployment is expected to set.
# ============================================================================

import os
from pathlib import Path
from typing import Any, Dict

BASE_DIR = Path(__file__).resolve().parent.parent

# Document file names (siblings inside data_dir)
EQUIPMENT_DOCUMENT = "equipments.json"
PROCESS_DOCUMENT = "processTitles.json"
LINE_DOCUMENT = "lineNames.json"
USERS_DOCUMENT = "users.json"


def _load_defaults() -> Dict[str, Any]:
    return {
        "host": os.getenv("MES_HOST", "0.0.0.0"),
        "port": int(os.getenv("PORT", "3001")),
        "data_dir": Path(os.getenv("MES_DATA_DIR", str(BASE_DIR / "data"))),
        "log_level": os.getenv("MES_LOG_LEVEL", "info").lower(),
        "sse_keepalive_seconds": 30,
    }


DEFAULT_CONFIG = _load_defaults()


def reload_config():
    """Re-read environment overrides (the test suite sets them before startup)."""
    DEFAULT_CONFIG.clear()
    DEFAULT_CONFIG.update(_load_defaults())


def get_config(key: str, default: Any = None) -> Any:
    return DEFAULT_CONFIG.get(key, default)


def document_path(name: str) -> Path:
    """Path of a storage document inside the configured data directory."""
    return Path(get_config("data_dir")) / name
