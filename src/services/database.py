"""
Database service for MongoDB operations.
Handles all database interactions with proper indexing and error handling.
"""

import time
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from typing import Optional, Dict, Any, List, Iterable
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import BulkWriteError

from src.config import settings
from src.models.database import (
    LICENSES_COLLECTION,
    INFOS_COLLECTION,
    CATEGORIES_COLLECTION,
    IMAGES_COLLECTION,
    ANNOTATIONS_COLLECTION,
    COUNTERS_COLLECTION,
    CORE_COLLECTIONS,
    SequenceCounter
)
from src.utils.logging import logger, log_database_operation
from src.utils.exceptions import DatabaseError


def serialize_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Convert the store identity to a string so the document is JSON friendly."""
    if "_id" in document and isinstance(document["_id"], ObjectId):
        document["_id"] = str(document["_id"])
    document.pop("__v", None)
    return document


class DatabaseService:
    """MongoDB database service with async operations."""

    def __init__(self, client: AsyncIOMotorClient):
        """Initialize database service with MongoDB client."""
        self.client = client
        self.db: AsyncIOMotorDatabase = client.get_database()

        # Collections
        self.licenses: AsyncIOMotorCollection = self.db[LICENSES_COLLECTION]
        self.infos: AsyncIOMotorCollection = self.db[INFOS_COLLECTION]
        self.categories: AsyncIOMotorCollection = self.db[CATEGORIES_COLLECTION]
        self.images: AsyncIOMotorCollection = self.db[IMAGES_COLLECTION]
        self.annotations: AsyncIOMotorCollection = self.db[ANNOTATIONS_COLLECTION]
        self.counters: AsyncIOMotorCollection = self.db[COUNTERS_COLLECTION]

        logger.info("Database service initialized")

    def collection(self, name: str) -> AsyncIOMotorCollection:
        """Get a collection by name."""
        return self.db[name]

    async def ensure_indexes(self) -> None:
        """Create database indexes for optimal performance."""
        try:
            await self.categories.create_index([("id", 1)])

            # Application ids must stay unique across merges
            await self.images.create_index([("id", 1)], unique=True)
            await self.annotations.create_index([("id", 1)], unique=True)

            # Join keys used by the listing and export endpoints
            await self.annotations.create_index([("category_id", 1)])
            await self.annotations.create_index([("image_id", 1)])

            logger.info("Database indexes created successfully")

        except Exception as e:
            logger.warning(f"Failed to create some indexes: {e}")

    # Counting
    async def count_documents(self, name: str, query: Optional[Dict[str, Any]] = None) -> int:
        """Count documents in a collection matching a filter."""
        try:
            return await self.collection(name).count_documents(query or {})

        except Exception as e:
            logger.error(f"Failed to count {name}: {e}")
            raise DatabaseError(f"Counting {name} failed: {e}", operation="count", collection=name)

    async def collection_counts(self) -> Dict[str, int]:
        """Document counts for categories, images and annotations."""
        counts = {}
        for name in CORE_COLLECTIONS:
            counts[name] = await self.count_documents(name)
        return counts

    # Reads
    async def find_max_id(self, name: str) -> int:
        """Largest application `id` in a collection, 0 when empty."""
        try:
            document = await self.collection(name).find_one(
                {}, projection={"id": 1}, sort=[("id", -1)]
            )
            if not document or document.get("id") is None:
                return 0
            return int(document["id"])

        except Exception as e:
            logger.error(f"Failed to read max id from {name}: {e}")
            raise DatabaseError(f"Reading last id from {name} failed: {e}",
                                operation="find_one", collection=name)

    async def find_existing_ids(self, name: str, ids: Iterable[int]) -> set:
        """Subset of `ids` already present in a collection."""
        try:
            cursor = self.collection(name).find({"id": {"$in": list(ids)}}, projection={"id": 1})
            documents = await cursor.to_list(length=None)
            return {document["id"] for document in documents}

        except Exception as e:
            logger.error(f"Failed to look up ids in {name}: {e}")
            raise DatabaseError(f"Id lookup in {name} failed: {e}", operation="find", collection=name)

    async def find_by_ids(self, name: str, ids: Iterable[int]) -> List[Dict[str, Any]]:
        """Documents whose application `id` is in `ids`."""
        try:
            unique_ids = list({i for i in ids if i is not None})
            if not unique_ids:
                return []

            cursor = self.collection(name).find({"id": {"$in": unique_ids}})
            documents = await cursor.to_list(length=None)
            return [serialize_document(document) for document in documents]

        except Exception as e:
            logger.error(f"Failed to fetch {name} by id: {e}")
            raise DatabaseError(f"Fetching {name} failed: {e}", operation="find", collection=name)

    async def list_categories(self) -> List[Dict[str, Any]]:
        """All categories in insertion order."""
        try:
            cursor = self.categories.find({})
            documents = await cursor.to_list(length=None)
            return [serialize_document(document) for document in documents]

        except Exception as e:
            logger.error(f"Failed to list categories: {e}")
            raise DatabaseError(f"Category listing failed: {e}", operation="find",
                                collection=CATEGORIES_COLLECTION)

    async def get_category(self, object_id: str) -> Optional[Dict[str, Any]]:
        """Get category by its store identity."""
        try:
            if not ObjectId.is_valid(object_id):
                return None

            document = await self.categories.find_one({"_id": ObjectId(object_id)})
            return serialize_document(document) if document else None

        except Exception as e:
            logger.error(f"Failed to get category {object_id}: {e}")
            raise DatabaseError(f"Category retrieval failed: {e}", operation="find_one",
                                collection=CATEGORIES_COLLECTION)

    async def find_annotations(self, query: Dict[str, Any], skip: int = 0,
                               limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Annotations matching a filter, optionally paginated."""
        try:
            cursor = self.annotations.find(query).skip(skip)
            if limit is not None:
                cursor = cursor.limit(limit)

            documents = await cursor.to_list(length=limit)
            return [serialize_document(document) for document in documents]

        except Exception as e:
            logger.error(f"Failed to list annotations: {e}")
            raise DatabaseError(f"Annotation listing failed: {e}", operation="find",
                                collection=ANNOTATIONS_COLLECTION)

    async def count_annotations_by_category(self) -> Dict[int, int]:
        """Annotation counts keyed by category_id."""
        try:
            pipeline = [{"$group": {"_id": "$category_id", "count": {"$sum": 1}}}]
            cursor = self.annotations.aggregate(pipeline)
            groups = await cursor.to_list(length=None)
            return {group["_id"]: group["count"] for group in groups}

        except Exception as e:
            logger.error(f"Failed to aggregate annotation counts: {e}")
            raise DatabaseError(f"Annotation aggregation failed: {e}", operation="aggregate",
                                collection=ANNOTATIONS_COLLECTION)

    # Writes
    async def insert_many(self, name: str, documents: List[Dict[str, Any]]) -> int:
        """Insert documents and return how many were written."""
        if not documents:
            return 0

        started = time.perf_counter()
        try:
            result = await self.collection(name).insert_many(documents)
            inserted = len(result.inserted_ids)

            log_database_operation("insert_many", name, (time.perf_counter() - started) * 1000,
                                   count=inserted)
            return inserted

        except BulkWriteError as e:
            inserted = e.details.get("nInserted", 0)
            logger.error(f"Bulk insert into {name} stopped after {inserted} documents: {e}")
            raise DatabaseError(f"Bulk insert into {name} failed: {e}", operation="insert_many",
                                collection=name, details={"inserted_count": inserted})
        except Exception as e:
            logger.error(f"Failed to insert into {name}: {e}")
            raise DatabaseError(f"Insert into {name} failed: {e}", operation="insert_many",
                                collection=name, details={"inserted_count": 0})

    async def advance_sequence(self, name: str, count: int, floor: int) -> int:
        """
        Atomically reserve `count` ids from the `name` sequence.

        The counter is first raised to at least `floor` (the highest id already
        stored) and then incremented. Returns the counter value after the
        increment, i.e. the last id of the reserved block.
        """
        try:
            await self.counters.update_one(
                {"_id": name}, {"$max": {"seq": floor}}, upsert=True
            )
            document = await self.counters.find_one_and_update(
                {"_id": name},
                {"$inc": {"seq": count}},
                upsert=True,
                return_document=ReturnDocument.AFTER
            )
            return SequenceCounter.model_validate(document).seq

        except Exception as e:
            logger.error(f"Failed to advance sequence {name}: {e}")
            raise DatabaseError(f"Sequence allocation for {name} failed: {e}",
                                operation="find_one_and_update", collection=COUNTERS_COLLECTION)


# Global database service instance
_database_service: Optional[DatabaseService] = None
_client: Optional[AsyncIOMotorClient] = None


async def init_database() -> None:
    """Initialize database connection and service."""
    global _database_service, _client

    try:
        logger.info(f"Connecting to MongoDB: {settings.mongodb_url}")

        _client = AsyncIOMotorClient(settings.mongodb_url)

        # Test connection
        await _client.admin.command('ping')

        _database_service = DatabaseService(_client)
        await _database_service.ensure_indexes()

        logger.info("Database initialized successfully")

    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise DatabaseError(f"Database initialization failed: {e}")


async def close_database() -> None:
    """Close database connection."""
    global _client, _database_service

    if _client:
        _client.close()
        _client = None
        _database_service = None
        logger.info("Database connection closed")


def get_database() -> DatabaseService:
    """Get database service instance."""
    if _database_service is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _database_service


async def health_check_database() -> Dict[str, Any]:
    """Check database health for monitoring."""
    try:
        if _client is None:
            return {"status": "unhealthy", "error": "Database not initialized"}

        await _client.admin.command('ping')
        server_info = await _client.admin.command('buildInfo')

        return {
            "status": "healthy",
            "mongodb_version": server_info.get("version", "unknown")
        }

    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e)
        }
