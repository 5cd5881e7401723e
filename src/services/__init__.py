"""
Service layer for COCO Dataset Management API.
Contains the merge logic and the MongoDB integration.
"""

from .database import get_database, DatabaseService, init_database, close_database
from .id_reconciler import get_last_ids, LastIds, SequenceAllocator
from .merge_engine import reconcile, find_orphan_annotations, MergeResult
from .batch_writer import write_batches, BatchWriteReport, BatchResult
from .dataset_processor import DatasetProcessor, UploadResult, UploadPath

__all__ = [
    "get_database",
    "DatabaseService",
    "init_database",
    "close_database",
    "get_last_ids",
    "LastIds",
    "SequenceAllocator",
    "reconcile",
    "find_orphan_annotations",
    "MergeResult",
    "write_batches",
    "BatchWriteReport",
    "BatchResult",
    "DatasetProcessor",
    "UploadResult",
    "UploadPath"
]
