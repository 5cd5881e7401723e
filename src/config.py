"""
Configuration management for COCO Dataset Management API.
Handles environment-specific settings and dependency injection.
"""

from enum import Enum
from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Environment(str, Enum):
    """Environment types for the application."""
    LOCAL = "local"
    PRODUCTION = "production"


class IdAllocation(str, Enum):
    """How new image/annotation IDs are allocated on the merge path."""
    SEQUENCE = "sequence"
    MAX_SCAN = "max_scan"


class CategoryMergePolicy(str, Enum):
    """What happens to uploaded categories once the corpus is bootstrapped."""
    IGNORE = "ignore"
    APPEND_NEW = "append_new"


class OrphanAnnotationPolicy(str, Enum):
    """What happens to annotations referencing an image missing from the upload."""
    REJECT = "reject"
    DROP = "drop"
    KEEP = "keep"


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment Configuration
    environment: Environment = Environment.LOCAL
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    api_version: str = "1.0.0"
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # Database Configuration
    mongodb_url: str = "mongodb://localhost:27017/labelling_pro"

    # Upload Configuration
    max_upload_bytes: int = 200 * 1024 * 1024
    insert_batch_size: int = 500

    # Merge Configuration
    id_allocation: IdAllocation = IdAllocation.SEQUENCE
    category_merge_policy: CategoryMergePolicy = CategoryMergePolicy.IGNORE
    orphan_annotation_policy: OrphanAnnotationPolicy = OrphanAnnotationPolicy.REJECT

    @field_validator(
        'environment', 'id_allocation', 'category_merge_policy', 'orphan_annotation_policy',
        mode='before'
    )
    @classmethod
    def lowercase_enum_values(cls, v):
        """Accept enum values in any case."""
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator('insert_batch_size', 'max_upload_bytes')
    @classmethod
    def validate_positive(cls, v, info):
        """Batch size and upload ceiling must be positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name.upper()} must be a positive integer")
        return v

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore"  # Ignore extra fields instead of raising error
    }


# Global settings instance
settings = Settings()


def is_local_environment() -> bool:
    """Check if running in local development environment."""
    return settings.environment == Environment.LOCAL
