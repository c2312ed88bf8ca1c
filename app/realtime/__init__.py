"""
MES Dashboard Realtime Module
Live equipment feed: snapshot on connect, change fan-out, direct status pushes.
"""
from .routes import register_realtime_routes
from .broadcaster import get_broadcaster, reset_broadcaster
from .sse import get_sse_manager, reset_sse_manager

__all__ = [
    "register_realtime_routes",
    "get_broadcaster",
    "reset_broadcaster",
    "get_sse_manager",
    "reset_sse_manager",
]
