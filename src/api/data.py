"""
Dataset API endpoints.
Handles uploads, annotation listing/export and corpus status queries.
"""

from fastapi import APIRouter, HTTPException, Query, Depends, File, UploadFile
from typing import Optional, Dict, Any, List

from src.config import settings
from src.models.api import (
    AnnotationPage,
    CategoryCount,
    CategoryFilterRequest,
    CategoryOut,
    CollectionCheckResponse,
    EnrichedAnnotation,
    LastIds,
    UploadResult
)
from src.services.database import get_database, DatabaseService
from src.services.dataset_processor import DatasetProcessor
from src.services.id_reconciler import get_last_ids
from src.services import annotation_query
from src.utils.logging import logger
from src.utils.exceptions import (
    CocoDatasetError,
    MalformedUploadError,
    PayloadTooLargeError,
    get_http_status_code
)


router = APIRouter()

UPLOAD_CHUNK_BYTES = 1024 * 1024
MAX_PAGE_SIZE = 1000


def _http_error(e: CocoDatasetError) -> HTTPException:
    return HTTPException(status_code=get_http_status_code(e), detail=str(e))


def _page_param(raw: Optional[str], default: int, minimum: int) -> int:
    """Parse a pagination parameter; missing, non-numeric or too small values use `default`."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= minimum else default


async def read_upload(upload: UploadFile, limit_bytes: int) -> bytes:
    """Read an uploaded file, refusing anything larger than `limit_bytes`."""
    chunks = []
    size = 0
    while True:
        chunk = await upload.read(UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        size += len(chunk)
        if size > limit_bytes:
            raise PayloadTooLargeError(limit_bytes)
        chunks.append(chunk)
    return b"".join(chunks)


@router.get("/annotations/category-count", response_model=List[CategoryCount])
async def get_category_counts(
    db: DatabaseService = Depends(get_database)
) -> List[Dict[str, Any]]:
    """Number of annotations per category for the dashboard."""
    try:
        return await annotation_query.category_counts(db)

    except CocoDatasetError as e:
        logger.error(f"Failed to count annotations by category: {e}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Unexpected error counting annotations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/annotations/categories", response_model=List[EnrichedAnnotation])
async def export_annotations_by_category(
    request: CategoryFilterRequest,
    db: DatabaseService = Depends(get_database)
) -> List[Dict[str, Any]]:
    """
    Export every annotation belonging to the requested categories.

    Each annotation is returned with its image file name and category names.
    """
    try:
        return await annotation_query.filter_by_categories(db, request.category_ids)

    except CocoDatasetError as e:
        logger.error(f"Failed to export annotations: {e}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Unexpected error exporting annotations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=AnnotationPage)
async def list_annotations(
    offset: Optional[str] = Query(None, description="Number of annotations to skip (default 0)"),
    limit: Optional[str] = Query(None, description="Annotations per page (default 10, at most 1000)"),
    category: Optional[str] = Query(None, description="Category store identity (_id)"),
    db: DatabaseService = Depends(get_database)
) -> AnnotationPage:
    """
    List annotations with pagination and an optional category filter.

    `totalAnnotations` is the number of matching annotations across all pages.
    Unusable `offset` or `limit` values fall back to their defaults.
    """
    try:
        page_offset = _page_param(offset, 0, minimum=0)
        page_size = min(_page_param(limit, 10, minimum=1), MAX_PAGE_SIZE)
        logger.info(f"Listing annotations: offset={page_offset}, limit={page_size}, category={category}")
        return await annotation_query.list_annotations(
            db, offset=page_offset, limit=page_size, category=category
        )

    except CocoDatasetError as e:
        logger.error(f"Failed to list annotations: {e}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Unexpected error listing annotations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/categories", response_model=List[CategoryOut])
async def list_categories(
    db: DatabaseService = Depends(get_database)
) -> List[Dict[str, Any]]:
    """All persisted categories."""
    try:
        return await db.list_categories()

    except CocoDatasetError as e:
        logger.error(f"Failed to list categories: {e}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Unexpected error listing categories: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/check", response_model=CollectionCheckResponse)
async def check_collections(
    db: DatabaseService = Depends(get_database)
) -> Dict[str, bool]:
    """Whether categories, images and annotations already hold data."""
    try:
        counts = await db.collection_counts()
        return {name: count > 0 for name, count in counts.items()}

    except CocoDatasetError as e:
        logger.error(f"Failed to check collections: {e}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Unexpected error checking collections: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/update", response_model=UploadResult)
async def upload_dataset(
    jsonFile: Optional[UploadFile] = File(None, description="COCO JSON document"),
    db: DatabaseService = Depends(get_database)
) -> UploadResult:
    """
    Upload a COCO dataset.

    When the corpus is empty the upload is stored as-is. Otherwise its images
    and annotations are renumbered after the current last ids and appended.
    A `partial` status means some insert batches failed.
    """
    try:
        if jsonFile is None:
            raise MalformedUploadError("No file uploaded", field="jsonFile")

        logger.info(f"Received upload: {jsonFile.filename}")
        content = await read_upload(jsonFile, settings.max_upload_bytes)

        processor = DatasetProcessor(db=db)
        return await processor.process_upload(content)

    except CocoDatasetError as e:
        logger.error(f"Upload rejected: {e}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error during data update: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        if jsonFile is not None:
            await jsonFile.close()


@router.get("/last-ids", response_model=LastIds)
async def read_last_ids(
    db: DatabaseService = Depends(get_database)
) -> LastIds:
    """Largest image and annotation ids currently stored."""
    try:
        return await get_last_ids(db)

    except CocoDatasetError as e:
        logger.error(f"Failed to read last ids: {e}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Unexpected error reading last ids: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
