"""
MES Dashboard Auth — Static user directory

Users come from a read-only JSON document loaded once at startup:
    [{"username": "...", "password": "...", "role": "..."}, ...]
Passwords are compared as plain strings.
"""
import logging
from pathlib import Path
from typing import Dict, List, Optional

from app.errors import AuthFailure, StorageReadFailure
from app.store.documents import load_document

logger = logging.getLogger("auth.models")


class UserDirectory:

    def __init__(self, path: Path):
        self.path = Path(path)
        self._users: List[Dict] = []

    def load(self) -> int:
        try:
            users = load_document(self.path)
        except StorageReadFailure as e:
            logger.error(f"[Auth] Failed to load {self.path.name}, no users available: {e.cause}")
            users = []
        self._users = [u for u in users if isinstance(u, dict)]
        logger.info(f"[Auth] Loaded {len(self._users)} users")
        return len(self._users)

    def count(self) -> int:
        return len(self._users)

    def authenticate(self, username, password, role) -> Dict[str, str]:
        """
        Exact match on username, password and role.

        Returns {"username", "role"}; raises AuthFailure otherwise.
        """
        for user in self._users:
            if (user.get("username") == username
                    and user.get("password") == password
                    and user.get("role") == role):
                return {"username": user.get("username"), "role": user.get("role")}
        logger.info(f"[Auth] Login rejected for {username!r} as {role!r}")
        raise AuthFailure()


# Singleton directory
_directory: Optional[UserDirectory] = None


def init_user_directory(path: Path) -> UserDirectory:
    global _directory
    _directory = UserDirectory(path)
    _directory.load()
    return _directory


def get_user_directory() -> UserDirectory:
    if _directory is None:
        raise RuntimeError("User directory not initialized; call init_user_directory() first")
    return _directory
