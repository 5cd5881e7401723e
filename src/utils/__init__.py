"""
Utility modules for COCO Dataset Management API.
Provides logging, exception handling, and common utilities.
"""

from .logging import logger, setup_logging
from .exceptions import (
    CocoDatasetError,
    ValidationError,
    MalformedUploadError,
    OrphanAnnotationError,
    PayloadTooLargeError,
    MergeError,
    DatabaseError
)

__all__ = [
    "logger",
    "setup_logging",
    "CocoDatasetError",
    "ValidationError",
    "MalformedUploadError",
    "OrphanAnnotationError",
    "PayloadTooLargeError",
    "MergeError",
    "DatabaseError"
]
