"""
Essential test configuration for COCO Dataset Management.
Simplified, focused fixtures that match actual implementation.
"""

import copy
import pytest
from typing import Dict, Any
from unittest.mock import AsyncMock

from httpx import AsyncClient, ASGITransport

from src.main import app
from src.config import Settings, Environment
from src.services.database import get_database


# Core Configuration
@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Test configuration matching actual Settings model."""
    return Settings(
        environment=Environment.LOCAL,
        mongodb_url="mongodb://localhost:27017/test_labelling_pro",
        log_level="DEBUG"
    )


# Data Factories (Simple)
@pytest.fixture
def sample_coco_dataset() -> Dict[str, Any]:
    """Small COCO upload with two images and two annotations."""
    return copy.deepcopy({
        "info": {
            "contributor": "labeller",
            "date_created": "2024-05-01",
            "description": "Street scenes",
            "url": "",
            "version": "1.0",
            "year": 2024
        },
        "licenses": [{"id": 1, "name": "CC-BY", "url": "https://creativecommons.org/licenses/by/4.0/"}],
        "categories": [
            {"id": 1, "name": "car", "supercategory": "vehicle"},
            {"id": 2, "name": "person", "supercategory": "human"}
        ],
        "images": [
            {"id": 1, "file_name": "frame_0001.jpg", "flickrurl": "", "width": 1920},
            {"id": 2, "file_name": "frame_0002.jpg", "flickrurl": ""}
        ],
        "annotations": [
            {
                "id": 1,
                "image_id": 1,
                "category_id": 1,
                "segmentation": [[10, 10, 60, 10, 60, 40]],
                "area": 1500,
                "bbox": [10, 10, 50, 30],
                "attributes": {"occluded": False}
            },
            {
                "id": 2,
                "image_id": 2,
                "category_id": 2,
                "segmentation": [],
                "area": 400.5,
                "bbox": [5, 5, 20, 20],
                "attributes": {}
            }
        ]
    })


# Mock Services (Simple)
@pytest.fixture
def mock_database_service():
    """Mock database service backed by simple in-test state."""
    mock = AsyncMock()

    mock.collection_counts.return_value = {"categories": 0, "images": 0, "annotations": 0}
    mock.find_max_id.return_value = 0
    mock.find_existing_ids.return_value = set()
    mock.insert_many.side_effect = lambda name, documents: len(documents)
    mock.advance_sequence.side_effect = lambda name, count, floor: floor + count

    mock.list_categories.return_value = []
    mock.get_category.return_value = None
    mock.find_annotations.return_value = []
    mock.find_by_ids.return_value = []
    mock.count_documents.return_value = 0
    mock.count_annotations_by_category.return_value = {}

    return mock


@pytest.fixture
def inserted(mock_database_service):
    """Documents passed to insert_many for one collection, in insertion order."""

    def _inserted(collection: str):
        documents = []
        for call in mock_database_service.insert_many.call_args_list:
            name, batch = call.args
            if name == collection:
                documents.extend(batch)
        return documents

    return _inserted


# API Client Fixtures
@pytest.fixture
async def test_client(mock_database_service):
    """Test client with the database dependency overridden."""
    app.dependency_overrides[get_database] = lambda: mock_database_service

    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
