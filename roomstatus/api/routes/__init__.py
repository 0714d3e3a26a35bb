"""Route modules for the roomstatus server."""

from .auth_routes import register_auth_routes
from .room_routes import register_room_routes
from .static_routes import register_static_routes
from .status_routes import register_status_routes

__all__ = [
    "register_auth_routes",
    "register_room_routes",
    "register_static_routes",
    "register_status_routes",
]
