"""
API request and response models for COCO Dataset Management.
Defines the structure of HTTP requests and responses.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, computed_field


class CategoryFilterRequest(BaseModel):
    """Request body for exporting annotations of selected categories."""
    category_ids: List[int] = Field(..., description="Application-level category ids")

    model_config = {
        "json_schema_extra": {
            "example": {"category_ids": [1, 3]}
        }
    }


class CategoryOut(BaseModel):
    """Persisted category with its store identity."""
    mongo_id: Optional[str] = Field(None, alias="_id", description="Store identity")
    id: int = Field(..., description="Category identifier")
    name: Optional[str] = Field(None, description="Category name")
    supercategory: Optional[str] = Field(None, description="Parent category name")

    model_config = {"populate_by_name": True}


class CategoryCount(BaseModel):
    """Annotation count for one category."""
    category_id: int = Field(..., description="Category identifier")
    name: str = Field(..., description="Category name")
    count: int = Field(..., ge=0, description="Number of annotations")


class EnrichedAnnotation(BaseModel):
    """Annotation joined with its image file name and category names."""
    mongo_id: Optional[str] = Field(None, alias="_id", description="Store identity")
    id: int = Field(..., description="Annotation identifier")
    image_id: Optional[int] = Field(None, description="Referenced image id")
    category_id: Optional[int] = Field(None, description="Referenced category id")
    segmentation: Any = Field(default_factory=list, description="Polygons or RLE")
    area: Optional[float] = Field(None, description="Region area")
    bbox: Optional[List[float]] = Field(None, description="[x, y, width, height]")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Free-form attributes")
    file_name: str = Field(..., description="Image file name or placeholder")
    name: str = Field(..., description="Category name or placeholder")
    supercategory: str = Field(..., description="Category supercategory or placeholder")

    model_config = {"populate_by_name": True}


class AnnotationPage(BaseModel):
    """Paginated annotation listing."""
    data: List[EnrichedAnnotation] = Field(..., description="Annotations on this page")
    totalAnnotations: int = Field(..., ge=0, description="Total matching annotations")


class CollectionCheckResponse(BaseModel):
    """Existence flags for the core collections."""
    categories: bool
    images: bool
    annotations: bool


class LastIds(BaseModel):
    """Largest image and annotation ids in the store (0 when empty)."""
    last_image_id: int = Field(..., ge=0, alias="lastImageId")
    last_annotation_id: int = Field(..., ge=0, alias="lastAnnotationId")

    model_config = {"populate_by_name": True}


class BatchResult(BaseModel):
    """Outcome of one insert batch."""
    index: int = Field(..., ge=0, description="Zero-based batch number")
    size: int = Field(..., ge=0, description="Records in the batch")
    inserted_count: int = Field(..., ge=0, description="Records actually inserted")
    error: Optional[str] = Field(None, description="Failure message (if the batch failed)")

    @property
    def succeeded(self) -> bool:
        return self.error is None


class BatchWriteReport(BaseModel):
    """Aggregate insert outcome for one collection."""
    collection: str
    total_records: int = Field(0, ge=0)
    batches: List[BatchResult] = Field(default_factory=list, description="Every batch, in insert order")

    @computed_field
    @property
    def inserted_count(self) -> int:
        return sum(batch.inserted_count for batch in self.batches)

    @computed_field
    @property
    def failed_batches(self) -> List[BatchResult]:
        return [batch for batch in self.batches if not batch.succeeded]

    @property
    def has_failures(self) -> bool:
        return any(not batch.succeeded for batch in self.batches)


class UploadPath(str, Enum):
    """Which branch an upload took."""
    BOOTSTRAP = "bootstrap"
    MERGE = "merge"


class UploadResult(BaseModel):
    """Outcome of one processed upload."""
    path: UploadPath = Field(..., description="bootstrap or merge")
    reports: List[BatchWriteReport] = Field(default_factory=list, description="Per-collection write reports")
    dropped_annotations: int = Field(0, ge=0, description="Orphan annotations dropped")

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Data successfully merged into existing collections.",
                "path": "merge",
                "status": "completed",
                "reports": [
                    {
                        "collection": "images",
                        "total_records": 2,
                        "inserted_count": 2,
                        "batches": [{"index": 0, "size": 2, "inserted_count": 2, "error": None}],
                        "failed_batches": []
                    }
                ],
                "dropped_annotations": 0
            }
        }
    }

    @property
    def has_failures(self) -> bool:
        return any(report.has_failures for report in self.reports)

    @computed_field
    @property
    def status(self) -> str:
        return "partial" if self.has_failures else "completed"

    @computed_field
    @property
    def message(self) -> str:
        if self.has_failures:
            failed = sum(len(report.failed_batches) for report in self.reports)
            return f"Upload finished with {failed} failed batch(es); some records were not stored."
        if self.path == UploadPath.BOOTSTRAP:
            return "Data added successfully as collections were empty."
        return "Data successfully merged into existing collections."


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str = Field(..., description="Overall health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="API version")
    dependencies: Dict[str, str] = Field(..., description="Dependency health status")
    errors: Optional[List[str]] = Field(None, description="Error messages (if unhealthy)")
