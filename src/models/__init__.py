"""
Data models for COCO Dataset Management API.
Includes API request/response models, database models, and COCO format models.
"""

from .api import *
from .database import *
from .coco import *

__all__ = [
    # API Models
    "CategoryFilterRequest",
    "CategoryOut",
    "CategoryCount",
    "EnrichedAnnotation",
    "AnnotationPage",
    "CollectionCheckResponse",
    "LastIds",
    "BatchResult",
    "BatchWriteReport",
    "UploadPath",
    "UploadResult",
    "HealthResponse",

    # Database Models
    "SequenceCounter",

    # COCO Models
    "License",
    "Info",
    "Category",
    "Image",
    "Annotation",
    "CocoDataset"
]
