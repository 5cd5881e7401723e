"""
Chunked bulk inserts with per-batch failure isolation.
A failing batch is logged and recorded; later batches still run.
"""

import math
from typing import Any, Dict, Optional, Sequence

from src.models.api import BatchResult, BatchWriteReport
from src.services.database import DatabaseService, get_database
from src.utils.logging import log_batch_write
from src.utils.exceptions import CocoDatasetError

DEFAULT_BATCH_SIZE = 500


async def write_batches(records: Sequence[Dict[str, Any]], collection: str,
                        batch_size: int = DEFAULT_BATCH_SIZE,
                        db: Optional[DatabaseService] = None) -> BatchWriteReport:
    """
    Insert `records` into `collection` in consecutive chunks of `batch_size`.

    Chunks are inserted one after another. There is no rollback: a failed
    chunk is recorded in the returned report and the remaining chunks are
    still attempted.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    db = db or get_database()
    report = BatchWriteReport(collection=collection, total_records=len(records))
    total_batches = math.ceil(len(records) / batch_size)

    for index in range(total_batches):
        chunk = list(records[index * batch_size:(index + 1) * batch_size])

        try:
            inserted = await db.insert_many(collection, chunk)
            report.batches.append(BatchResult(index=index, size=len(chunk), inserted_count=inserted))
            log_batch_write(collection, index + 1, total_batches, len(chunk), inserted)

        except Exception as e:
            inserted = 0
            if isinstance(e, CocoDatasetError):
                inserted = e.details.get("inserted_count", 0)
            report.batches.append(
                BatchResult(index=index, size=len(chunk), inserted_count=inserted, error=str(e))
            )
            log_batch_write(collection, index + 1, total_batches, len(chunk), inserted, error=str(e))

    return report
