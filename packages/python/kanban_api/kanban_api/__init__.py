"""Expose the kanban FastAPI routers."""

from .checklists_router import router as checklists_router
from .errors import install_error_handlers
from .router import router

__all__ = ["router", "checklists_router", "install_error_handlers"]
