"""HTTP surface: routes, request dependencies, and error translation."""

from dealroom.api.errors import register_error_handlers
from dealroom.api.routes import router

__all__ = ["register_error_handlers", "router"]
