"""
COCO Dataset Management Test Suite

Test coverage for:
- Merge engine renumbering and orphan handling
- Batch writer chunking and failure isolation
- Upload processing on bootstrap and merge paths
- Annotation listing/export enrichment
- API endpoints with error handling
"""

__version__ = "1.0.0"
