"""
MES Dashboard Auth Module
Stateless username/password/role check against the static user list.
"""
from .routes import register_auth_routes
from .models import init_user_directory, get_user_directory

__all__ = [
    "register_auth_routes",
    "init_user_directory",
    "get_user_directory",
]
