"""
Pytest configuration and shared fixtures.
"""

import copy
from typing import Dict, Optional

import pytest
from bson import ObjectId
from werkzeug.security import generate_password_hash

from booksearch.auth import TokenIdentity, TokenManager
from booksearch.errors import ConflictError
from booksearch.models import NewUser, SavedBook, UserDocument
from booksearch.resolvers import ResolverContext


class InMemoryUserRepository:
    """
    In-memory stand-in for UserRepository with the same method surface.
    Keeps documents in their stored (camelCase) shape.
    """

    def __init__(self):
        self.documents: Dict[ObjectId, dict] = {}

    def _to_user(self, document: Optional[dict]) -> Optional[UserDocument]:
        if document is None:
            return None
        return UserDocument.from_document(copy.deepcopy(document))

    def _get(self, user_id: Optional[str]) -> Optional[dict]:
        if user_id is None or not ObjectId.is_valid(user_id):
            return None
        return self.documents.get(ObjectId(user_id))

    def seed_user(self, username: str, email: str, password: str) -> UserDocument:
        """Insert a user synchronously for test setup."""
        object_id = ObjectId()
        self.documents[object_id] = {
            "_id": object_id,
            "username": username,
            "email": email,
            "password": generate_password_hash(password),
            "savedBooks": [],
        }
        return self._to_user(self.documents[object_id])

    async def find_by_id(self, user_id: str) -> Optional[UserDocument]:
        return self._to_user(self._get(user_id))

    async def find_by_id_or_username(self, user_id=None, username=None) -> Optional[UserDocument]:
        document = self._get(user_id)
        if document is None and username is not None:
            document = next(
                (d for d in self.documents.values() if d["username"] == username), None
            )
        return self._to_user(document)

    async def find_by_username_or_email(self, username=None, email=None) -> Optional[UserDocument]:
        for document in self.documents.values():
            if username is not None and document["username"] == username:
                return self._to_user(document)
            if email is not None and document["email"] == email:
                return self._to_user(document)
        return None

    async def create(self, new_user: NewUser) -> UserDocument:
        for document in self.documents.values():
            if document["username"] == new_user.username or document["email"] == new_user.email:
                raise ConflictError("A user with this username or email already exists")
        return self.seed_user(new_user.username, new_user.email, new_user.password)

    async def add_saved_book(self, user_id: str, book: SavedBook) -> Optional[UserDocument]:
        document = self._get(user_id)
        if document is None:
            return None
        if all(saved["bookId"] != book.book_id for saved in document["savedBooks"]):
            document["savedBooks"].append(book.to_document())
        return self._to_user(document)

    async def remove_saved_book(self, user_id: str, book_id: str) -> Optional[UserDocument]:
        document = self._get(user_id)
        if document is None:
            return None
        document["savedBooks"] = [
            saved for saved in document["savedBooks"] if saved["bookId"] != book_id
        ]
        return self._to_user(document)


@pytest.fixture
def user_repository():
    """Create an empty in-memory user repository."""
    return InMemoryUserRepository()


@pytest.fixture
def token_manager():
    """Create a token manager with a test secret."""
    return TokenManager("test-secret-key", algorithm="HS256", expire_minutes=60)


@pytest.fixture
def alice(user_repository):
    """A registered user."""
    return user_repository.seed_user("alice", "a@x.com", "secret1")


@pytest.fixture
def anonymous_context(user_repository, token_manager):
    """Resolver context for a request without a token."""
    return ResolverContext(users=user_repository, tokens=token_manager, user=None)


@pytest.fixture
def alice_context(user_repository, token_manager, alice):
    """Resolver context authenticated as alice."""
    return ResolverContext(
        users=user_repository,
        tokens=token_manager,
        user=TokenIdentity(id=alice.id, username=alice.username, email=alice.email),
    )


@pytest.fixture
def sample_book_data():
    """Book data as a client would send it."""
    return {
        "bookId": "b1",
        "title": "T",
        "authors": ["Ann Author"],
        "description": "A test book description",
        "image": "https://example.com/cover.jpg",
        "link": "https://example.com/book/b1",
    }
