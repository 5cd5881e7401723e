"""
API route handlers for COCO Dataset Management.
Implements REST endpoints for dataset operations.
"""

from .data import router as data_router
from .health import router as health_router

__all__ = [
    "data_router",
    "health_router"
]
