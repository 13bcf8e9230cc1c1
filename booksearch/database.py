"""
MongoDB access for user documents.
Handles connection, indexing, and the single-document operations
used by the GraphQL resolvers.
"""

from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError
from werkzeug.security import generate_password_hash

from booksearch.errors import ConflictError
from booksearch.models import NewUser, SavedBook, UserDocument

logger = structlog.get_logger(__name__)


def to_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """Parse a string id, returning None when it is not a valid ObjectId."""
    if value is None:
        return None
    if isinstance(value, ObjectId):
        return value
    if ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class UserRepository:
    """Async operations on the users collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def create_indexes(self) -> None:
        """Create the unique indexes that back username/email uniqueness."""
        try:
            await self.collection.create_index("username", unique=True)
            await self.collection.create_index("email", unique=True)
            logger.info("Successfully created user indexes")
        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def _find_one(self, clauses: List[Dict[str, Any]]) -> Optional[UserDocument]:
        if not clauses:
            return None
        document = await self.collection.find_one({"$or": clauses})
        if document is None:
            return None
        return UserDocument.from_document(document)

    async def find_by_id(self, user_id: str) -> Optional[UserDocument]:
        """Get a user by id."""
        object_id = to_object_id(user_id)
        if object_id is None:
            return None
        document = await self.collection.find_one({"_id": object_id})
        if document is None:
            return None
        return UserDocument.from_document(document)

    async def find_by_id_or_username(
        self,
        user_id: Optional[str] = None,
        username: Optional[str] = None
    ) -> Optional[UserDocument]:
        """
        Get a user matching either the id or the username.
        
        Args:
            user_id: User id (ignored when not a valid ObjectId)
            username: Username
            
        Returns:
            UserDocument if found, None otherwise
        """
        clauses = []
        object_id = to_object_id(user_id)
        if object_id is not None:
            clauses.append({"_id": object_id})
        if username is not None:
            clauses.append({"username": username})
        return await self._find_one(clauses)

    async def find_by_username_or_email(
        self,
        username: Optional[str] = None,
        email: Optional[str] = None
    ) -> Optional[UserDocument]:
        """Get a user matching either login identifier."""
        clauses = []
        if username is not None:
            clauses.append({"username": username})
        if email is not None:
            clauses.append({"email": email})
        return await self._find_one(clauses)

    async def create(self, new_user: NewUser) -> UserDocument:
        """
        Insert a new user, hashing the password first.
        
        Args:
            new_user: Validated registration input
            
        Returns:
            The stored UserDocument
            
        Raises:
            ConflictError: If the username or email is already taken
        """
        document = {
            "username": new_user.username,
            "email": new_user.email,
            "password": generate_password_hash(new_user.password),
            "savedBooks": [],
        }
        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError:
            logger.warning("User already exists", username=new_user.username)
            raise ConflictError("A user with this username or email already exists")

        document["_id"] = result.inserted_id
        logger.info("User created", user_id=str(result.inserted_id), username=new_user.username)
        return UserDocument.from_document(document)

    async def add_saved_book(self, user_id: str, book: SavedBook) -> Optional[UserDocument]:
        """
        Add a book unless an entry with the same bookId is already saved.
        
        Args:
            user_id: Owner's id
            book: Book to save
            
        Returns:
            Updated UserDocument, or None if the user does not exist
        """
        object_id = to_object_id(user_id)
        if object_id is None:
            return None

        document = await self.collection.find_one_and_update(
            {"_id": object_id, "savedBooks.bookId": {"$ne": book.book_id}},
            {"$push": {"savedBooks": book.to_document()}},
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            # Either the book is already saved or the user is gone
            document = await self.collection.find_one({"_id": object_id})
            if document is None:
                return None
            logger.debug("Book already saved", user_id=user_id, book_id=book.book_id)
        else:
            logger.debug("Book saved", user_id=user_id, book_id=book.book_id)
        return UserDocument.from_document(document)

    async def remove_saved_book(self, user_id: str, book_id: str) -> Optional[UserDocument]:
        """
        Remove every saved entry with the given bookId.
        
        Returns:
            Updated UserDocument, or None if the user does not exist
        """
        object_id = to_object_id(user_id)
        if object_id is None:
            return None

        document = await self.collection.find_one_and_update(
            {"_id": object_id},
            {"$pull": {"savedBooks": {"bookId": book_id}}},
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            return None
        logger.debug("Book removed", user_id=user_id, book_id=book_id)
        return UserDocument.from_document(document)


class MongoDBManager:
    """
    Async MongoDB manager owning the client connection.
    """
    
    def __init__(self, connection_url: str, database_name: str, collection_name: str = "users"):
        """
        Initialize MongoDB manager.
        
        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the users collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.users: Optional[UserRepository] = None
    
    async def connect(self) -> UserRepository:
        """Establish connection to MongoDB and prepare the users collection."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]
            
            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", 
                       database=self.database_name, 
                       collection=self.collection_name)
            
            self.users = UserRepository(self.database[self.collection_name])
            await self.users.create_indexes()
            return self.users
            
        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise
    
    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def health_check(self) -> Dict:
        """
        Perform database health check.
        
        Returns:
            Dictionary with health status
        """
        if self.database is None:
            return {"status": "unhealthy", "error": "not connected"}
        try:
            await self.database.command("ping")
            users_count = await self.database[self.collection_name].count_documents({})
            return {
                "status": "healthy",
                "users_collection": "accessible",
                "users_count": users_count
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
