"""
Database models for MongoDB collections.
Defines collection names and the documents the service keeps for itself.
"""

from pydantic import BaseModel, Field


class SequenceCounter(BaseModel):
    """Database model for the counters collection (one document per sequence)."""

    name: str = Field(..., alias="_id", description="Sequence name (target collection)")
    seq: int = Field(0, ge=0, description="Highest ID handed out so far")

    model_config = {
        "populate_by_name": True
    }


# Collection names for database operations
LICENSES_COLLECTION = "licenses"
INFOS_COLLECTION = "infos"
CATEGORIES_COLLECTION = "categories"
IMAGES_COLLECTION = "images"
ANNOTATIONS_COLLECTION = "annotations"
COUNTERS_COLLECTION = "counters"

CORE_COLLECTIONS = (CATEGORIES_COLLECTION, IMAGES_COLLECTION, ANNOTATIONS_COLLECTION)
