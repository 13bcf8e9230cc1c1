"""
Tests for the MongoDB user repository.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError
from werkzeug.security import check_password_hash

from booksearch.database import MongoDBManager, UserRepository, to_object_id
from booksearch.errors import ConflictError
from booksearch.models import NewUser, SavedBook


@pytest.fixture
def collection():
    """Mock motor collection."""
    return AsyncMock()


@pytest.fixture
def repository(collection):
    return UserRepository(collection)


@pytest.fixture
def stored_user():
    """A raw user document as returned by the driver."""
    return {
        "_id": ObjectId(),
        "username": "alice",
        "email": "a@x.com",
        "password": "hashed",
        "savedBooks": [{"bookId": "b1", "title": "T", "authors": []}],
    }


def test_to_object_id():
    object_id = ObjectId()
    assert to_object_id(str(object_id)) == object_id
    assert to_object_id(object_id) is object_id
    assert to_object_id("not-an-id") is None
    assert to_object_id(None) is None


@pytest.mark.asyncio
async def test_create_indexes(repository, collection):
    await repository.create_indexes()
    collection.create_index.assert_any_await("username", unique=True)
    collection.create_index.assert_any_await("email", unique=True)


@pytest.mark.asyncio
async def test_find_by_id_or_username_builds_or_query(repository, collection, stored_user):
    collection.find_one.return_value = stored_user
    object_id = stored_user["_id"]

    user = await repository.find_by_id_or_username(str(object_id), "alice")

    collection.find_one.assert_awaited_once_with(
        {"$or": [{"_id": object_id}, {"username": "alice"}]}
    )
    assert user.id == str(object_id)
    assert user.saved_books[0].book_id == "b1"


@pytest.mark.asyncio
async def test_find_by_id_or_username_ignores_invalid_id(repository, collection):
    collection.find_one.return_value = None

    await repository.find_by_id_or_username("bogus", "alice")

    collection.find_one.assert_awaited_once_with({"$or": [{"username": "alice"}]})


@pytest.mark.asyncio
async def test_find_without_identifiers_skips_query(repository, collection):
    assert await repository.find_by_id_or_username() is None
    assert await repository.find_by_username_or_email() is None
    collection.find_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_find_by_username_or_email(repository, collection, stored_user):
    collection.find_one.return_value = stored_user

    user = await repository.find_by_username_or_email(email="a@x.com")

    collection.find_one.assert_awaited_once_with({"$or": [{"email": "a@x.com"}]})
    assert user.username == "alice"


@pytest.mark.asyncio
async def test_create_hashes_password(repository, collection):
    object_id = ObjectId()
    collection.insert_one.return_value = MagicMock(inserted_id=object_id)

    user = await repository.create(NewUser(username="alice", email="a@x.com", password="secret1"))

    inserted = collection.insert_one.await_args.args[0]
    assert inserted["password"] != "secret1"
    assert check_password_hash(inserted["password"], "secret1")
    assert inserted["savedBooks"] == []
    assert user.id == str(object_id)
    assert user.is_correct_password("secret1")


@pytest.mark.asyncio
async def test_create_duplicate_raises_conflict(repository, collection):
    collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error")

    with pytest.raises(ConflictError):
        await repository.create(NewUser(username="alice", email="a@x.com", password="secret1"))


@pytest.mark.asyncio
async def test_add_saved_book_guards_on_book_id(repository, collection, stored_user):
    collection.find_one_and_update.return_value = stored_user
    object_id = stored_user["_id"]
    book = SavedBook(bookId="b1", title="T")

    user = await repository.add_saved_book(str(object_id), book)

    collection.find_one_and_update.assert_awaited_once_with(
        {"_id": object_id, "savedBooks.bookId": {"$ne": "b1"}},
        {"$push": {"savedBooks": book.to_document()}},
        return_document=ReturnDocument.AFTER,
    )
    collection.find_one.assert_not_awaited()
    assert user.book_count == 1


@pytest.mark.asyncio
async def test_add_saved_book_already_present(repository, collection, stored_user):
    collection.find_one_and_update.return_value = None
    collection.find_one.return_value = stored_user

    user = await repository.add_saved_book(str(stored_user["_id"]), SavedBook(bookId="b1"))

    collection.find_one.assert_awaited_once_with({"_id": stored_user["_id"]})
    assert [book.book_id for book in user.saved_books] == ["b1"]


@pytest.mark.asyncio
async def test_add_saved_book_missing_user(repository, collection):
    collection.find_one_and_update.return_value = None
    collection.find_one.return_value = None

    assert await repository.add_saved_book(str(ObjectId()), SavedBook(bookId="b1")) is None


@pytest.mark.asyncio
async def test_remove_saved_book_pulls_by_book_id(repository, collection, stored_user):
    stored_user["savedBooks"] = []
    collection.find_one_and_update.return_value = stored_user
    object_id = stored_user["_id"]

    user = await repository.remove_saved_book(str(object_id), "b1")

    collection.find_one_and_update.assert_awaited_once_with(
        {"_id": object_id},
        {"$pull": {"savedBooks": {"bookId": "b1"}}},
        return_document=ReturnDocument.AFTER,
    )
    assert user.saved_books == []


@pytest.mark.asyncio
async def test_remove_saved_book_invalid_id(repository, collection):
    assert await repository.remove_saved_book("bogus", "b1") is None
    collection.find_one_and_update.assert_not_awaited()


@pytest.mark.asyncio
async def test_find_by_id(repository, collection, stored_user):
    collection.find_one.return_value = stored_user
    object_id = stored_user["_id"]

    user = await repository.find_by_id(str(object_id))

    collection.find_one.assert_awaited_once_with({"_id": object_id})
    assert user.username == "alice"


@pytest.mark.asyncio
async def test_find_by_id_invalid_id(repository, collection):
    assert await repository.find_by_id("bogus") is None
    collection.find_one.assert_not_awaited()


class TestMongoDBManager:
    """Test cases for MongoDBManager."""

    @pytest.fixture
    def manager(self):
        return MongoDBManager("mongodb://localhost:27017", "googlebooks", "users")

    @pytest.mark.asyncio
    async def test_connect_creates_indexes(self, manager):
        users_collection = AsyncMock()
        database = MagicMock()
        database.__getitem__.return_value = users_collection
        client = MagicMock()
        client.admin.command = AsyncMock()
        client.__getitem__.return_value = database

        with patch("booksearch.database.AsyncIOMotorClient", return_value=client):
            repository = await manager.connect()

        client.admin.command.assert_awaited_once_with("ping")
        database.__getitem__.assert_called_with("users")
        assert repository is manager.users
        assert repository.collection is users_collection
        users_collection.create_index.assert_any_await("username", unique=True)

    @pytest.mark.asyncio
    async def test_connect_failure_propagates(self, manager):
        client = MagicMock()
        client.admin.command = AsyncMock(side_effect=ConnectionFailure("connection refused"))

        with patch("booksearch.database.AsyncIOMotorClient", return_value=client):
            with pytest.raises(ConnectionFailure):
                await manager.connect()
        assert manager.users is None

    @pytest.mark.asyncio
    async def test_health_check_healthy(self, manager):
        users_collection = AsyncMock()
        users_collection.count_documents.return_value = 3
        manager.database = MagicMock()
        manager.database.command = AsyncMock()
        manager.database.__getitem__.return_value = users_collection

        health = await manager.health_check()

        assert health == {
            "status": "healthy",
            "users_collection": "accessible",
            "users_count": 3,
        }

    @pytest.mark.asyncio
    async def test_health_check_unhealthy(self, manager):
        manager.database = MagicMock()
        manager.database.command = AsyncMock(side_effect=ConnectionFailure("timed out"))

        health = await manager.health_check()

        assert health["status"] == "unhealthy"
        assert "timed out" in health["error"]

    @pytest.mark.asyncio
    async def test_health_check_not_connected(self, manager):
        health = await manager.health_check()
        assert health == {"status": "unhealthy", "error": "not connected"}
