"""
Health check API endpoints.
Provides service health monitoring and dependency status.
"""

from fastapi import APIRouter
from datetime import datetime, timezone
from typing import Dict, Any

from src.models.api import HealthResponse
from src.config import settings
from src.services.database import health_check_database
from src.utils.logging import logger


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> Dict[str, Any]:
    """
    Health check for the service and its MongoDB dependency.

    Returns overall health status and the database status.
    """
    try:
        logger.debug("Performing health check")

        db_health = await health_check_database()
        dependencies = {"mongodb": db_health.get("status", "unknown")}

        response = {
            "status": "healthy" if dependencies["mongodb"] == "healthy" else "unhealthy",
            "timestamp": datetime.now(timezone.utc),
            "version": settings.api_version,
            "dependencies": dependencies
        }

        if db_health.get("error"):
            response["errors"] = [f"MongoDB: {db_health['error']}"]
            logger.warning(f"Health check failed: {response['errors']}")
        else:
            logger.debug("Health check passed")

        return response

    except Exception as e:
        logger.error(f"Health check error: {e}")
        return {
            "status": "unhealthy",
            "timestamp": datetime.now(timezone.utc),
            "version": settings.api_version,
            "dependencies": {"mongodb": "unknown"},
            "errors": [f"Health check failed: {str(e)}"]
        }
