"""
Annotation listing and export queries.
Joins annotations with their image and category records in memory.
"""

from typing import Any, Dict, Iterable, List, Optional

from src.models.api import AnnotationPage
from src.models.database import CATEGORIES_COLLECTION, IMAGES_COLLECTION, ANNOTATIONS_COLLECTION
from src.services.database import DatabaseService
from src.utils.logging import logger

PLACEHOLDER = "N/A"


def _index_by_id(documents: Iterable[Dict[str, Any]]) -> Dict[int, Dict[str, Any]]:
    return {document["id"]: document for document in documents if document.get("id") is not None}


def enrich_annotations(annotations: Iterable[Dict[str, Any]],
                       images_by_id: Dict[int, Dict[str, Any]],
                       categories_by_id: Dict[int, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Attach file_name, name and supercategory; unmatched joins get a placeholder."""
    enriched = []
    for annotation in annotations:
        image = images_by_id.get(annotation.get("image_id")) or {}
        category = categories_by_id.get(annotation.get("category_id")) or {}
        enriched.append({
            **annotation,
            "file_name": image.get("file_name") or PLACEHOLDER,
            "name": category.get("name") or PLACEHOLDER,
            "supercategory": category.get("supercategory") or PLACEHOLDER
        })
    return enriched


async def _enrich(db: DatabaseService, annotations: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    images = await db.find_by_ids(IMAGES_COLLECTION, (a.get("image_id") for a in annotations))
    categories = await db.find_by_ids(CATEGORIES_COLLECTION, (a.get("category_id") for a in annotations))
    return enrich_annotations(annotations, _index_by_id(images), _index_by_id(categories))


async def list_annotations(db: DatabaseService, offset: int = 0, limit: int = 10,
                           category: Optional[str] = None) -> AnnotationPage:
    """
    One page of enriched annotations.

    `category` is a category's store identity (`_id`), not its application
    id. An unknown category yields an empty page. `totalAnnotations` counts every
    matching annotation regardless of `offset` and `limit`.
    """
    query: Dict[str, Any] = {}

    if category:
        category_document = await db.get_category(category)
        if category_document is None:
            logger.debug(f"Category filter {category} matched nothing")
            return AnnotationPage(data=[], totalAnnotations=0)
        query["category_id"] = category_document["id"]

    annotations = await db.find_annotations(query, skip=offset, limit=limit)
    rows = await _enrich(db, annotations)
    total = await db.count_documents(ANNOTATIONS_COLLECTION, query)

    return AnnotationPage(data=rows, totalAnnotations=total)


async def category_counts(db: DatabaseService) -> List[Dict[str, Any]]:
    """Annotation count per category, including categories with none, ordered by category id."""
    counts = await db.count_annotations_by_category()
    categories = await db.list_categories()

    result = []
    seen = set()
    for category in categories:
        if category.get("id") is None or category["id"] in seen:
            continue
        seen.add(category["id"])
        result.append({
            "category_id": category["id"],
            "name": category.get("name") or PLACEHOLDER,
            "count": counts.get(category["id"], 0)
        })
    return sorted(result, key=lambda row: row["category_id"])


async def filter_by_categories(db: DatabaseService, category_ids: List[int]) -> List[Dict[str, Any]]:
    """Every annotation in the given categories, enriched."""
    if not category_ids:
        return []

    annotations = await db.find_annotations({"category_id": {"$in": list(category_ids)}})
    logger.info(f"Exporting {len(annotations)} annotations for categories {category_ids}")
    return await _enrich(db, annotations)
