"""
Unit tests for the MongoDB gateway.
The Motor database and collection are mocked.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from api.database import MongoBookGateway
from api.errors import DocumentRejected, InvalidBookId


@pytest.fixture
def mock_collection():
    """Mock Motor collection."""
    collection = MagicMock()
    collection.insert_one = AsyncMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.find_one_and_delete = AsyncMock(return_value=None)
    collection.count_documents = AsyncMock(return_value=0)
    collection.create_index = AsyncMock()
    return collection


@pytest.fixture
def mock_database(mock_collection):
    """Mock Motor database returning the mock collection."""
    database = MagicMock()
    database.__getitem__.return_value = mock_collection
    database.command = AsyncMock(return_value={"ok": 1})
    return database


@pytest.fixture
def gateway(mock_database):
    return MongoBookGateway(mock_database, "books")


class TestMongoBookGateway:
    """Test cases for MongoBookGateway."""

    def test_uses_configured_collection(self, mock_database, mock_collection):
        gateway = MongoBookGateway(mock_database, "library")

        mock_database.__getitem__.assert_called_with("library")
        assert gateway.books_collection is mock_collection

    @pytest.mark.asyncio
    async def test_ensure_indexes(self, gateway, mock_collection):
        await gateway.ensure_indexes()
        mock_collection.create_index.assert_awaited_once_with("isbn", unique=True, sparse=True)

    @pytest.mark.asyncio
    async def test_find_all(self, gateway, mock_collection):
        oid = ObjectId()
        cursor = MagicMock()
        cursor.to_list = AsyncMock(return_value=[{"_id": oid, "title": "1984"}])
        mock_collection.find.return_value = cursor

        books = await gateway.find_all()

        mock_collection.find.assert_called_once_with({})
        assert books == [{"id": str(oid), "title": "1984"}]

    @pytest.mark.asyncio
    async def test_find_all_propagates_driver_errors(self, gateway, mock_collection):
        cursor = MagicMock()
        cursor.to_list = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))
        mock_collection.find.return_value = cursor

        with pytest.raises(ServerSelectionTimeoutError):
            await gateway.find_all()

    @pytest.mark.asyncio
    async def test_find_by_id(self, gateway, mock_collection):
        oid = ObjectId()
        mock_collection.find_one.return_value = {"_id": oid, "title": "1984"}

        book = await gateway.find_by_id(str(oid))

        mock_collection.find_one.assert_awaited_once_with({"_id": oid})
        assert book == {"id": str(oid), "title": "1984"}

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, gateway):
        assert await gateway.find_by_id(str(ObjectId())) is None

    @pytest.mark.asyncio
    async def test_find_by_id_malformed(self, gateway, mock_collection):
        with pytest.raises(InvalidBookId):
            await gateway.find_by_id("abc")
        mock_collection.find_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insert(self, gateway, mock_collection, sample_book_data):
        oid = ObjectId()

        async def fake_insert(document):
            document["_id"] = oid

        mock_collection.insert_one.side_effect = fake_insert

        book = await gateway.insert({**sample_book_data, "genre": "dystopia"})

        mock_collection.insert_one.assert_awaited_once()
        assert book == {"id": str(oid), **sample_book_data}

    @pytest.mark.asyncio
    async def test_insert_invalid_document(self, gateway, mock_collection):
        with pytest.raises(DocumentRejected):
            await gateway.insert({"title": "1984", "author": "Orwell", "publishedYear": 1949.5})
        mock_collection.insert_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insert_duplicate_key(self, gateway, mock_collection, sample_book_data):
        errmsg = 'E11000 duplicate key error collection: book_api.books index: isbn_1 dup key: { isbn: "1" }'
        mock_collection.insert_one.side_effect = DuplicateKeyError(errmsg, 11000, {"errmsg": errmsg})

        with pytest.raises(DocumentRejected) as exc_info:
            await gateway.insert({**sample_book_data, "isbn": "1"})

        assert str(exc_info.value) == errmsg

    @pytest.mark.asyncio
    async def test_update(self, gateway, mock_collection):
        oid = ObjectId()
        mock_collection.find_one_and_update.return_value = {"_id": oid, "title": "Nineteen Eighty-Four"}

        book = await gateway.update_by_id(str(oid), {"title": "Nineteen Eighty-Four", "_id": "x"})

        mock_collection.find_one_and_update.assert_awaited_once_with(
            {"_id": oid},
            {"$set": {"title": "Nineteen Eighty-Four"}},
            return_document=ReturnDocument.AFTER,
        )
        assert book == {"id": str(oid), "title": "Nineteen Eighty-Four"}

    @pytest.mark.asyncio
    async def test_update_clearing_isbn_unsets_field(self, gateway, mock_collection):
        oid = ObjectId()
        mock_collection.find_one_and_update.return_value = {"_id": oid, "title": "1984"}

        book = await gateway.update_by_id(str(oid), {"title": "1984", "isbn": None})

        mock_collection.find_one_and_update.assert_awaited_once_with(
            {"_id": oid},
            {"$set": {"title": "1984"}, "$unset": {"isbn": ""}},
            return_document=ReturnDocument.AFTER,
        )
        assert "isbn" not in book

    @pytest.mark.asyncio
    async def test_update_missing(self, gateway):
        assert await gateway.update_by_id(str(ObjectId()), {"title": "X"}) is None

    @pytest.mark.asyncio
    async def test_empty_update_reads_current_document(self, gateway, mock_collection):
        oid = ObjectId()
        mock_collection.find_one.return_value = {"_id": oid, "title": "1984"}

        book = await gateway.update_by_id(str(oid), {})

        mock_collection.find_one_and_update.assert_not_awaited()
        assert book["title"] == "1984"

    @pytest.mark.asyncio
    async def test_invalid_update_on_missing_book(self, gateway, mock_collection):
        mock_collection.count_documents.return_value = 0

        assert await gateway.update_by_id(str(ObjectId()), {"publishedYear": "abc"}) is None

    @pytest.mark.asyncio
    async def test_invalid_update_on_existing_book(self, gateway, mock_collection):
        mock_collection.count_documents.return_value = 1

        with pytest.raises(DocumentRejected):
            await gateway.update_by_id(str(ObjectId()), {"publishedYear": "abc"})
        mock_collection.find_one_and_update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_malformed_id(self, gateway):
        with pytest.raises(InvalidBookId):
            await gateway.update_by_id("abc", {"title": "X"})

    @pytest.mark.asyncio
    async def test_delete(self, gateway, mock_collection):
        oid = ObjectId()
        mock_collection.find_one_and_delete.return_value = {"_id": oid, "title": "1984"}

        book = await gateway.delete_by_id(str(oid))

        mock_collection.find_one_and_delete.assert_awaited_once_with({"_id": oid})
        assert book["id"] == str(oid)

    @pytest.mark.asyncio
    async def test_delete_missing(self, gateway):
        assert await gateway.delete_by_id(str(ObjectId())) is None

    @pytest.mark.asyncio
    async def test_health_check(self, gateway, mock_database, mock_collection):
        mock_collection.count_documents.return_value = 3

        health = await gateway.health_check()

        mock_database.command.assert_awaited_once_with("ping")
        assert health["status"] == "healthy"
        assert health["books_count"] == 3

    @pytest.mark.asyncio
    async def test_health_check_unhealthy(self, gateway, mock_database):
        mock_database.command.side_effect = ServerSelectionTimeoutError("no servers")

        health = await gateway.health_check()

        assert health["status"] == "unhealthy"
        assert "no servers" in health["error"]
