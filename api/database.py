"""
MongoDB persistence gateway for the book API.
"""

from typing import Any, Dict, List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from api.config import APIConfig
from api.errors import DocumentRejected
from api.gateway import BookGateway, build_changes, build_document, parse_book_id, serialize_book

logger = structlog.get_logger(__name__)


def create_client(settings: APIConfig) -> AsyncIOMotorClient:
    """Build a Motor client from configuration."""
    return AsyncIOMotorClient(
        settings.mongodb_url,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
    )


def _duplicate_message(exc: DuplicateKeyError) -> str:
    details = exc.details or {}
    return details.get("errmsg") or str(exc)


class MongoBookGateway(BookGateway):
    """Book gateway backed by a Motor collection."""

    def __init__(self, database: AsyncIOMotorDatabase, collection_name: str = "books"):
        self.database = database
        self.collection_name = collection_name
        self.books_collection = database[collection_name]

    async def ensure_indexes(self) -> None:
        """Create the unique ISBN index. Books without an ISBN are not indexed."""
        try:
            await self.books_collection.create_index("isbn", unique=True, sparse=True)
            logger.info("Book indexes ready", collection=self.collection_name)
        except PyMongoError as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def find_all(self) -> List[Dict[str, Any]]:
        try:
            cursor = self.books_collection.find({})
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to list books", error=str(e))
            raise
        return [serialize_book(doc) for doc in documents]

    async def find_by_id(self, book_id: str) -> Optional[Dict[str, Any]]:
        object_id = parse_book_id(book_id)
        try:
            document = await self.books_collection.find_one({"_id": object_id})
        except PyMongoError as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise
        return serialize_book(document)

    async def insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        document = build_document(payload)
        try:
            # insert_one sets document["_id"]
            await self.books_collection.insert_one(document)
        except DuplicateKeyError as e:
            logger.warning("Duplicate book rejected", isbn=document.get("isbn"))
            raise DocumentRejected(_duplicate_message(e)) from e
        except PyMongoError as e:
            logger.error("Failed to insert book", title=document.get("title"), error=str(e))
            raise
        return serialize_book(document)

    async def update_by_id(self, book_id: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        object_id = parse_book_id(book_id)
        try:
            changes = build_changes(payload)
        except DocumentRejected:
            if await self.books_collection.count_documents({"_id": object_id}, limit=1) == 0:
                return None
            raise

        try:
            update = changes.to_update()
            if not update:
                document = await self.books_collection.find_one({"_id": object_id})
            else:
                document = await self.books_collection.find_one_and_update(
                    {"_id": object_id},
                    update,
                    return_document=ReturnDocument.AFTER,
                )
        except DuplicateKeyError as e:
            logger.warning("Duplicate book rejected on update", book_id=book_id)
            raise DocumentRejected(_duplicate_message(e)) from e
        except PyMongoError as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise
        return serialize_book(document)

    async def delete_by_id(self, book_id: str) -> Optional[Dict[str, Any]]:
        object_id = parse_book_id(book_id)
        try:
            document = await self.books_collection.find_one_and_delete({"_id": object_id})
        except PyMongoError as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise
        return serialize_book(document)

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            books_count = await self.books_collection.count_documents({})
            return {
                "status": "healthy",
                "books_collection": "accessible",
                "books_count": books_count,
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
