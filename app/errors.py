"""
MES Dashboard — Error types shared by the store, auth and route layers.
"""
from pathlib import Path
from typing import Union


class MesError(Exception):
    """Base error for the dashboard backend."""


class EntityNotFound(MesError):
    """Raised when an update targets an id that is not in the collection."""

    def __init__(self, kind: str, entity_id: int):
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


class AuthFailure(MesError):
    """Raised when username, password and role do not match a known user."""

    DEFAULT_MESSAGE = "Login failed: username, password or role does not match."

    def __init__(self, message: str = DEFAULT_MESSAGE):
        super().__init__(message)
        self.message = message


class StorageError(MesError):
    def __init__(self, path: Union[str, Path], cause: Exception):
        super().__init__(f"{path}: {cause}")
        self.path = Path(path)
        self.cause = cause


class StorageReadFailure(StorageError):
    """A document exists but cannot be read or parsed as a JSON array."""


class StorageWriteFailure(StorageError):
    """A document could not be overwritten."""
