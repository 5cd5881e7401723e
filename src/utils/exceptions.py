"""
Custom exception classes for COCO Dataset Management API.
Provides structured error handling across the application.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List


class CocoDatasetError(Exception):
    """Base exception class for COCO dataset management errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize exception with message and optional details."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """String representation of the exception."""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__.lower().replace("error", "_error"),
            "message": self.message,
            "details": self.details
        }


class ValidationError(CocoDatasetError):
    """Raised when uploaded data fails validation."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Optional[Any] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize validation error with optional field information."""
        super().__init__(message, details)
        self.field = field
        self.value = value

        if field:
            self.details["invalid_field"] = field
        if value is not None:
            self.details["invalid_value"] = str(value)


class MalformedUploadError(ValidationError):
    """Raised when the uploaded file is missing, not JSON, or not COCO-shaped."""
    pass


class OrphanAnnotationError(ValidationError):
    """Raised when annotations reference images absent from the same upload."""

    def __init__(self, annotation_ids: List[Any], image_ids: List[Any]):
        """Initialize with the offending annotation and image IDs."""
        preview = ", ".join(str(i) for i in sorted(set(image_ids), key=str)[:10])
        super().__init__(
            f"{len(annotation_ids)} annotation(s) reference image_id values not present "
            f"in the upload: {preview}",
            field="annotations.image_id"
        )
        self.annotation_ids = annotation_ids
        self.image_ids = image_ids
        self.details["orphan_annotation_count"] = len(annotation_ids)


class PayloadTooLargeError(CocoDatasetError):
    """Raised when an upload exceeds the configured size ceiling."""

    def __init__(self, limit_bytes: int):
        super().__init__(f"Uploaded file exceeds the {limit_bytes} byte limit")
        self.limit_bytes = limit_bytes
        self.details["limit_bytes"] = limit_bytes


class MergeError(CocoDatasetError):
    """Raised when an upload cannot be applied to the corpus."""

    def __init__(self, message: str, path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        """Initialize merge error with the upload path (bootstrap or merge)."""
        super().__init__(message, details)
        self.path = path

        if path:
            self.details["upload_path"] = path


class DatabaseError(CocoDatasetError):
    """Raised when database operations fail."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 collection: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize database error with optional operation details."""
        super().__init__(message, details)
        self.operation = operation
        self.collection = collection

        if operation:
            self.details["db_operation"] = operation
        if collection:
            self.details["db_collection"] = collection


# Exception mapping for HTTP status codes
EXCEPTION_STATUS_MAP = {
    ValidationError: 400,
    PayloadTooLargeError: 413,
    MergeError: 500,
    DatabaseError: 500,
    CocoDatasetError: 500
}


def get_http_status_code(exception: Exception) -> int:
    """Get appropriate HTTP status code for exception."""
    for exc_type, status_code in EXCEPTION_STATUS_MAP.items():
        if isinstance(exception, exc_type):
            return status_code
    return 500  # Default to internal server error


def format_exception_response(exception: CocoDatasetError) -> Dict[str, Any]:
    """Format exception as standardized API error response."""
    response = exception.to_dict()
    response["timestamp"] = datetime.now(timezone.utc).isoformat()
    return response
