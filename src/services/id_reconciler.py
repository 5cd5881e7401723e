"""
ID reconciliation for merged uploads.
Reads the current last ids and hands out non-overlapping id blocks.
"""

from src.config import IdAllocation
from src.models.api import LastIds
from src.models.database import IMAGES_COLLECTION, ANNOTATIONS_COLLECTION
from src.services.database import DatabaseService
from src.utils.logging import logger


async def get_last_ids(db: DatabaseService) -> LastIds:
    """Read the maximum image and annotation ids. Store failures propagate."""
    last_image_id = await db.find_max_id(IMAGES_COLLECTION)
    last_annotation_id = await db.find_max_id(ANNOTATIONS_COLLECTION)
    return LastIds(last_image_id=last_image_id, last_annotation_id=last_annotation_id)


class SequenceAllocator:
    """
    Hands out id blocks per collection.

    With ``IdAllocation.SEQUENCE`` each reservation is an atomic
    increment-and-fetch on a counter document that never falls below the
    collection's current maximum id, so concurrent merges receive disjoint
    blocks. ``IdAllocation.MAX_SCAN`` reads the maximum id and offsets from
    it, which is only safe with a single writer.
    """

    def __init__(self, db: DatabaseService, strategy: IdAllocation = IdAllocation.SEQUENCE):
        self.db = db
        self.strategy = strategy

    async def reserve(self, collection: str, count: int) -> int:
        """
        Reserve `count` ids for `collection`.

        Returns the base id: the reserved block is ``base + 1 .. base + count``.
        """
        if count < 0:
            raise ValueError("Cannot reserve a negative number of ids")

        current_max = await self.db.find_max_id(collection)

        if self.strategy == IdAllocation.MAX_SCAN:
            return current_max

        last = await self.db.advance_sequence(collection, count, floor=current_max)
        base = last - count
        logger.debug(f"Reserved {collection} ids {base + 1}..{last}")
        return base

    async def reserve_upload(self, image_count: int, annotation_count: int) -> LastIds:
        """Reserve blocks for one merged upload."""
        image_base = await self.reserve(IMAGES_COLLECTION, image_count)
        annotation_base = await self.reserve(ANNOTATIONS_COLLECTION, annotation_count)
        return LastIds(last_image_id=image_base, last_annotation_id=annotation_base)
