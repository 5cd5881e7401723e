"""
API tests for COCO Dataset Management.

Tests the /data endpoints and health check with a mocked database service,
covering uploads on both paths, listing, export and error responses.
"""

import io
import json
import pytest
from typing import Dict, Any
from unittest.mock import AsyncMock
from httpx import AsyncClient
from fastapi import status, UploadFile

from src.config import settings
from src.api.data import read_upload
from src.utils.exceptions import DatabaseError, PayloadTooLargeError

CATEGORY_DOCS = [
    {"_id": "665f1c2e8b1e4a0012345601", "id": 1, "name": "car", "supercategory": "vehicle"},
    {"_id": "665f1c2e8b1e4a0012345602", "id": 2, "name": "person", "supercategory": "human"},
]
IMAGE_DOCS = [
    {"_id": "665f1c2e8b1e4a0012345701", "id": 1, "file_name": "frame_0001.jpg", "flickrurl": ""},
]
ANNOTATION_DOCS = [
    {
        "_id": "665f1c2e8b1e4a0012345801",
        "id": 1,
        "image_id": 1,
        "category_id": 1,
        "segmentation": [[1, 1, 4, 1, 4, 4]],
        "area": 9,
        "bbox": [1, 1, 3, 3],
        "attributes": {"occluded": False}
    },
    {
        "_id": "665f1c2e8b1e4a0012345802",
        "id": 2,
        "image_id": 5,
        "category_id": 2,
        "segmentation": [],
        "area": 4,
        "bbox": [0, 0, 2, 2],
        "attributes": {}
    },
]


def find_by_ids(name, ids):
    wanted = set(ids)
    source = {"images": IMAGE_DOCS, "categories": CATEGORY_DOCS}[name]
    return [dict(document) for document in source if document["id"] in wanted]


def upload_files(payload) -> Dict[str, Any]:
    content = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return {"jsonFile": ("annotations.json", content, "application/json")}


class TestUpload:
    """Test POST /data/update."""

    async def test_bootstrap_upload(
        self,
        test_client: AsyncClient,
        mock_database_service: AsyncMock,
        sample_coco_dataset: Dict[str, Any]
    ):
        response = await test_client.post("/data/update", files=upload_files(sample_coco_dataset))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["message"] == "Data added successfully as collections were empty."
        assert data["path"] == "bootstrap"
        assert data["status"] == "completed"
        assert data["dropped_annotations"] == 0

    async def test_merge_upload(
        self,
        test_client: AsyncClient,
        mock_database_service: AsyncMock,
        inserted,
        sample_coco_dataset: Dict[str, Any]
    ):
        mock_database_service.collection_counts.return_value = {
            "categories": 2, "images": 5, "annotations": 12
        }
        mock_database_service.find_max_id.side_effect = lambda name: {"images": 5, "annotations": 12}[name]

        response = await test_client.post("/data/update", files=upload_files(sample_coco_dataset))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["path"] == "merge"
        assert [r["collection"] for r in data["reports"]] == ["images", "annotations"]
        assert [image["id"] for image in inserted("images")] == [6, 7]
        assert [a["image_id"] for a in inserted("annotations")] == [6, 7]

    async def test_partial_failure_is_reported(
        self,
        test_client: AsyncClient,
        mock_database_service: AsyncMock,
        sample_coco_dataset: Dict[str, Any]
    ):
        mock_database_service.insert_many.side_effect = DatabaseError("write concern timeout")

        response = await test_client.post("/data/update", files=upload_files(sample_coco_dataset))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "partial"
        assert any(report["failed_batches"] for report in data["reports"])

    async def test_missing_file(self, test_client: AsyncClient):
        response = await test_client.post(
            "/data/update",
            files={"otherFile": ("x.json", b"{}", "application/json")}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "No file uploaded"

    async def test_invalid_json(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        response = await test_client.post("/data/update", files=upload_files(b"{\"images\": ["))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "not valid JSON" in response.json()["message"]
        mock_database_service.insert_many.assert_not_called()

    async def test_orphan_annotations_rejected(
        self,
        test_client: AsyncClient,
        mock_database_service: AsyncMock,
        sample_coco_dataset: Dict[str, Any]
    ):
        mock_database_service.collection_counts.return_value = {
            "categories": 2, "images": 5, "annotations": 12
        }
        sample_coco_dataset["annotations"][0]["image_id"] = 404

        response = await test_client.post("/data/update", files=upload_files(sample_coco_dataset))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "404" in response.json()["message"]
        mock_database_service.insert_many.assert_not_called()

    async def test_payload_too_large(
        self,
        test_client: AsyncClient,
        mock_database_service: AsyncMock,
        monkeypatch,
        sample_coco_dataset: Dict[str, Any]
    ):
        monkeypatch.setattr(settings, "max_upload_bytes", 64)

        response = await test_client.post("/data/update", files=upload_files(sample_coco_dataset))

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert "64 byte limit" in response.json()["message"]
        mock_database_service.collection_counts.assert_not_called()

    async def test_declared_size_checked_before_body_is_read(
        self,
        test_client: AsyncClient,
        mock_database_service: AsyncMock,
        monkeypatch
    ):
        monkeypatch.setattr(settings, "max_upload_bytes", 10)

        response = await test_client.post("/data/update", files=upload_files(b"{}"))

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert response.json() == {"message": "Uploaded file exceeds the 10 byte limit"}
        mock_database_service.insert_many.assert_not_called()

    async def test_database_error(
        self,
        test_client: AsyncClient,
        mock_database_service: AsyncMock,
        sample_coco_dataset: Dict[str, Any]
    ):
        mock_database_service.collection_counts.side_effect = DatabaseError("connection refused")

        response = await test_client.post("/data/update", files=upload_files(sample_coco_dataset))

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"message": "connection refused"}


class TestReadUpload:
    """Test the size ceiling applied while the uploaded file is read."""

    async def test_reads_whole_file_under_limit(self):
        upload = UploadFile(file=io.BytesIO(b"x" * 3000), filename="annotations.json")

        assert await read_upload(upload, limit_bytes=3000) == b"x" * 3000

    async def test_stops_once_limit_is_passed(self, monkeypatch):
        monkeypatch.setattr("src.api.data.UPLOAD_CHUNK_BYTES", 4)
        upload = UploadFile(file=io.BytesIO(b"x" * 20), filename="annotations.json")

        with pytest.raises(PayloadTooLargeError):
            await read_upload(upload, limit_bytes=10)

        assert upload.file.tell() == 12


class TestListing:
    """Test GET /data."""

    async def test_default_pagination(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        mock_database_service.find_annotations.return_value = [dict(doc) for doc in ANNOTATION_DOCS]
        mock_database_service.find_by_ids.side_effect = find_by_ids
        mock_database_service.count_documents.return_value = 2

        response = await test_client.get("/data")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["totalAnnotations"] == 2
        assert len(data["data"]) == 2
        first, second = data["data"]
        assert first["_id"] == "665f1c2e8b1e4a0012345801"
        assert first["file_name"] == "frame_0001.jpg"
        assert first["name"] == "car"
        assert first["supercategory"] == "vehicle"
        assert second["file_name"] == "N/A"
        mock_database_service.find_annotations.assert_awaited_once_with({}, skip=0, limit=10)

    async def test_total_is_independent_of_limit(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        mock_database_service.find_annotations.return_value = [dict(ANNOTATION_DOCS[0])]
        mock_database_service.find_by_ids.side_effect = find_by_ids
        mock_database_service.count_documents.return_value = 250

        response = await test_client.get("/data?offset=30&limit=1")

        data = response.json()
        assert len(data["data"]) == 1
        assert data["totalAnnotations"] == 250
        mock_database_service.find_annotations.assert_awaited_once_with({}, skip=30, limit=1)

    async def test_category_filter(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        mock_database_service.get_category.return_value = CATEGORY_DOCS[1]

        response = await test_client.get(f"/data?category={CATEGORY_DOCS[1]['_id']}")

        assert response.status_code == status.HTTP_200_OK
        mock_database_service.find_annotations.assert_awaited_once_with({"category_id": 2}, skip=0, limit=10)

    async def test_unknown_category(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        response = await test_client.get("/data?category=665f1c2e8b1e4a00123456ff")

        assert response.json() == {"data": [], "totalAnnotations": 0}

    @pytest.mark.parametrize("query,skip,limit", [
        ("offset=-1", 0, 10),
        ("limit=0", 0, 10),
        ("limit=abc", 0, 10),
        ("offset=abc&limit=5", 0, 5),
        ("offset=20&limit=5000", 20, 1000),
    ])
    async def test_unusable_pagination_falls_back(
        self,
        test_client: AsyncClient,
        mock_database_service: AsyncMock,
        query: str,
        skip: int,
        limit: int
    ):
        response = await test_client.get(f"/data?{query}")

        assert response.status_code == status.HTTP_200_OK
        mock_database_service.find_annotations.assert_awaited_once_with({}, skip=skip, limit=limit)

    async def test_store_failure(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        mock_database_service.find_annotations.side_effect = DatabaseError("Annotation listing failed: timeout")

        response = await test_client.get("/data")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["message"] == "Annotation listing failed: timeout"


class TestCategoryEndpoints:
    """Test category listing, counts and export."""

    async def test_list_categories(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        mock_database_service.list_categories.return_value = CATEGORY_DOCS

        response = await test_client.get("/data/categories")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == CATEGORY_DOCS

    async def test_category_count(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        mock_database_service.list_categories.return_value = CATEGORY_DOCS
        mock_database_service.count_annotations_by_category.return_value = {2: 7}

        response = await test_client.get("/data/annotations/category-count")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == [
            {"category_id": 1, "name": "car", "count": 0},
            {"category_id": 2, "name": "person", "count": 7},
        ]

    async def test_export_by_categories(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        mock_database_service.find_annotations.return_value = [dict(ANNOTATION_DOCS[0])]
        mock_database_service.find_by_ids.side_effect = find_by_ids

        response = await test_client.post("/data/annotations/categories", json={"category_ids": ["1"]})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data) == 1
        assert data[0]["name"] == "car"
        assert data[0]["attributes"] == {"occluded": False}
        mock_database_service.find_annotations.assert_awaited_once_with({"category_id": {"$in": [1]}})

    async def test_export_requires_category_ids(self, test_client: AsyncClient):
        response = await test_client.post("/data/annotations/categories", json={})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestCorpusStatus:
    """Test existence flags and last ids."""

    async def test_check(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        mock_database_service.collection_counts.return_value = {
            "categories": 3, "images": 0, "annotations": 0
        }

        response = await test_client.get("/data/check")

        assert response.json() == {"categories": True, "images": False, "annotations": False}

    async def test_last_ids(self, test_client: AsyncClient, mock_database_service: AsyncMock):
        mock_database_service.find_max_id.side_effect = lambda name: {"images": 5, "annotations": 12}[name]

        response = await test_client.get("/data/last-ids")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"lastImageId": 5, "lastAnnotationId": 12}

    async def test_last_ids_empty_store(self, test_client: AsyncClient):
        response = await test_client.get("/data/last-ids")

        assert response.json() == {"lastImageId": 0, "lastAnnotationId": 0}


class TestHealthAndRoot:

    async def test_health_without_database(self, test_client: AsyncClient):
        response = await test_client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["dependencies"]["mongodb"] == "unhealthy"

    async def test_root(self, test_client: AsyncClient):
        response = await test_client.get("/")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["service"] == "COCO Dataset Management API"
