"""
COCO Dataset Management API

A backend for uploading, merging, browsing and exporting
COCO format annotation datasets stored in MongoDB.
"""

__version__ = "1.0.0"
__author__ = "COCO Dataset Team"
