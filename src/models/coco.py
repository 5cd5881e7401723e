"""
COCO format models and validation.
Defines the structure of uploaded COCO datasets and their persisted records.
"""

import json
from typing import List, Dict, Any, Optional, Union
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from src.utils.exceptions import MalformedUploadError


class License(BaseModel):
    """COCO license entry."""

    id: Optional[int] = Field(None, description="License identifier")
    name: Optional[str] = Field(None, description="License name")
    url: Optional[str] = Field(None, description="License URL")


class Info(BaseModel):
    """COCO dataset info block."""

    contributor: Optional[str] = None
    date_created: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    version: Optional[str] = None
    year: Optional[str] = None

    @field_validator('contributor', 'date_created', 'description', 'url', 'version', 'year',
                     mode='before')
    @classmethod
    def coerce_to_string(cls, v):
        """Info fields are stored as strings; COCO exports often use numbers for year/version."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class Category(BaseModel):
    """COCO category. `id` is the join key used by annotations."""

    id: int = Field(..., description="Category identifier")
    name: str = Field(..., description="Category name")
    supercategory: Optional[str] = Field(None, description="Parent category name")


class Image(BaseModel):
    """COCO image. `id` is the join key used by annotation `image_id`."""

    id: int = Field(..., description="Image identifier")
    file_name: Optional[str] = Field(None, description="Image file name")
    flickrurl: Optional[str] = Field(None, description="Source URL")


class Annotation(BaseModel):
    """COCO annotation referencing an image and a category."""

    id: int = Field(..., description="Annotation identifier")
    image_id: Optional[int] = Field(None, description="Referenced image id")
    category_id: Optional[int] = Field(None, description="Referenced category id")
    segmentation: Union[List[Any], Dict[str, Any]] = Field(default_factory=list,
                                                            description="Polygons or RLE")
    area: Optional[float] = Field(None, description="Region area")
    bbox: Optional[List[float]] = Field(None, description="[x, y, width, height]")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Free-form attributes")

    @field_validator('bbox')
    @classmethod
    def validate_bbox(cls, v):
        """A bounding box has exactly four numbers."""
        if v is not None and len(v) != 4:
            raise ValueError(f"bbox must have 4 values, got {len(v)}")
        return v

    @field_validator('attributes', mode='before')
    @classmethod
    def default_attributes(cls, v):
        return {} if v is None else v

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": 1,
                "image_id": 1,
                "category_id": 3,
                "segmentation": [[10.0, 10.0, 50.0, 10.0, 50.0, 40.0]],
                "area": 1200.0,
                "bbox": [10.0, 10.0, 40.0, 30.0],
                "attributes": {"occluded": False}
            }
        }
    }


class CocoDataset(BaseModel):
    """A complete COCO-shaped upload."""

    info: Optional[Info] = None
    licenses: List[License] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    images: List[Image] = Field(default_factory=list)
    annotations: List[Annotation] = Field(default_factory=list)

    @field_validator('licenses', 'categories', 'images', 'annotations', mode='before')
    @classmethod
    def null_as_empty(cls, v):
        return [] if v is None else v

    @classmethod
    def from_json(cls, content: Union[str, bytes]) -> 'CocoDataset':
        """Parse an uploaded COCO JSON document."""
        try:
            data = json.loads(content)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedUploadError(f"Uploaded file is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise MalformedUploadError(
                "Uploaded JSON must be an object with categories, images and annotations"
            )

        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise MalformedUploadError(
                f"Invalid COCO dataset at {location}: {first['msg']}",
                field=location
            ) from e

    def summary(self) -> Dict[str, int]:
        """Record counts per section."""
        return {
            "licenses": len(self.licenses),
            "categories": len(self.categories),
            "images": len(self.images),
            "annotations": len(self.annotations)
        }
