"""
MES Dashboard Entity Store Module
Equipment, process-stage and line collections, each persisted as one JSON document.
"""
from .engine import EntityStore, IdGenerator, init_stores, get_store, get_counts
from .kinds import EQUIPMENT, PROCESS_STAGE, LINE, ALL_KINDS
from .routes import register_store_routes

__all__ = [
    "EntityStore",
    "IdGenerator",
    "init_stores",
    "get_store",
    "get_counts",
    "EQUIPMENT",
    "PROCESS_STAGE",
    "LINE",
    "ALL_KINDS",
    "register_store_routes",
]
