"""
tcgsync/api/routers package marker.
"""

from tcgsync.api.routers.auto_update import router as auto_update_router
from tcgsync.api.routers.grading import router as grading_router

__all__ = ["auto_update_router", "grading_router"]
