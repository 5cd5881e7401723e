"""
COCO dataset upload processing service.
Parses an uploaded dataset and either bootstraps or merges it into the corpus.
"""

from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel

from src.config import settings, IdAllocation, CategoryMergePolicy, OrphanAnnotationPolicy
from src.models.api import BatchWriteReport, UploadPath, UploadResult
from src.models.coco import CocoDataset, Category
from src.models.database import (
    LICENSES_COLLECTION,
    INFOS_COLLECTION,
    CATEGORIES_COLLECTION,
    IMAGES_COLLECTION,
    ANNOTATIONS_COLLECTION
)
from src.services.database import DatabaseService, get_database
from src.services.batch_writer import write_batches
from src.services.id_reconciler import SequenceAllocator
from src.services.merge_engine import reconcile, find_orphan_annotations
from src.utils.logging import logger
from src.utils.exceptions import CocoDatasetError, MergeError, OrphanAnnotationError


def _dump(records: Sequence[BaseModel]) -> List[Dict[str, Any]]:
    return [record.model_dump(exclude_none=True) for record in records]


class DatasetProcessor:
    """Applies uploaded COCO datasets to the persisted corpus."""

    def __init__(self, db: Optional[DatabaseService] = None,
                 batch_size: Optional[int] = None,
                 id_allocation: Optional[IdAllocation] = None,
                 category_policy: Optional[CategoryMergePolicy] = None,
                 orphan_policy: Optional[OrphanAnnotationPolicy] = None):
        """Initialize processor; unset options fall back to application settings."""
        self.db = db or get_database()
        self.batch_size = batch_size or settings.insert_batch_size
        self.allocator = SequenceAllocator(self.db, id_allocation or settings.id_allocation)
        self.category_policy = category_policy or settings.category_merge_policy
        self.orphan_policy = orphan_policy or settings.orphan_annotation_policy

    async def process_upload(self, content: Union[str, bytes]) -> UploadResult:
        """
        Parse an uploaded COCO document and persist it.

        If any of categories, images or annotations is empty in the store the
        upload is written verbatim (bootstrap). Otherwise images and
        annotations are renumbered after the current ids (merge).
        """
        dataset = CocoDataset.from_json(content)
        logger.info(f"Parsed upload: {dataset.summary()}")

        counts = await self.db.collection_counts()
        path = UploadPath.BOOTSTRAP if min(counts.values()) == 0 else UploadPath.MERGE

        try:
            if path == UploadPath.BOOTSTRAP:
                result = await self._bootstrap(dataset)
            else:
                result = await self._merge(dataset)

        except CocoDatasetError:
            raise
        except Exception as e:
            logger.error(f"Upload processing failed on {path.value} path: {e}", exc_info=True)
            raise MergeError(f"Upload processing failed: {e}", path=path.value)

        if result.has_failures:
            logger.warning(f"Upload on {path.value} path finished with failed batches")
        else:
            logger.info(f"Upload on {path.value} path completed")
        return result

    async def _bootstrap(self, dataset: CocoDataset) -> UploadResult:
        """Write the upload as-is; the first upload defines the id space."""
        logger.info("Collections are empty, storing upload without renumbering")
        result = UploadResult(path=UploadPath.BOOTSTRAP)

        if dataset.licenses:
            result.reports.append(await self._write(_dump(dataset.licenses), LICENSES_COLLECTION))
        if dataset.info is not None:
            result.reports.append(await self._write(_dump([dataset.info]), INFOS_COLLECTION))

        result.reports.append(await self._write(_dump(dataset.categories), CATEGORIES_COLLECTION))
        result.reports.append(await self._write(_dump(dataset.images), IMAGES_COLLECTION))
        result.reports.append(await self._write(_dump(dataset.annotations), ANNOTATIONS_COLLECTION))
        return result

    async def _merge(self, dataset: CocoDataset) -> UploadResult:
        """Renumber the upload after the current ids and append it."""
        if self.orphan_policy == OrphanAnnotationPolicy.REJECT:
            orphans = find_orphan_annotations(dataset.images, dataset.annotations)
            if orphans:
                raise OrphanAnnotationError(
                    annotation_ids=[annotation.id for annotation in orphans],
                    image_ids=[annotation.image_id for annotation in orphans]
                )

        bases = await self.allocator.reserve_upload(len(dataset.images), len(dataset.annotations))
        merged = reconcile(
            bases.last_image_id,
            bases.last_annotation_id,
            dataset.images,
            dataset.annotations,
            orphan_policy=self.orphan_policy
        )
        logger.info(
            f"Prepared {len(merged.images)} images and {len(merged.annotations)} annotations "
            f"(image ids after {bases.last_image_id}, annotation ids after {bases.last_annotation_id})"
        )

        result = UploadResult(path=UploadPath.MERGE)
        if self.orphan_policy == OrphanAnnotationPolicy.DROP:
            result.dropped_annotations = len(merged.orphans)

        categories = await self._categories_to_append(dataset.categories)
        if categories:
            result.reports.append(await self._write(_dump(categories), CATEGORIES_COLLECTION))

        result.reports.append(await self._write(_dump(merged.images), IMAGES_COLLECTION))
        result.reports.append(await self._write(_dump(merged.annotations), ANNOTATIONS_COLLECTION))
        return result

    async def _categories_to_append(self, categories: Sequence[Category]) -> List[Category]:
        """Uploaded categories that the merge path should store."""
        if not categories:
            return []

        if self.category_policy == CategoryMergePolicy.IGNORE:
            logger.info(f"Ignoring {len(categories)} uploaded categories on merge path")
            return []

        existing = await self.db.find_existing_ids(CATEGORIES_COLLECTION, [c.id for c in categories])
        new_categories = []
        for category in categories:
            if category.id in existing:
                continue
            existing.add(category.id)
            new_categories.append(category)

        logger.info(f"Appending {len(new_categories)} new categories "
                    f"({len(categories) - len(new_categories)} already present)")
        return new_categories

    async def _write(self, records: List[Dict[str, Any]], collection: str) -> BatchWriteReport:
        return await write_batches(records, collection, batch_size=self.batch_size, db=self.db)
