"""
Pydantic models for user documents and saved books.
Mirrors the shape of the documents stored in the users collection.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, validator
from werkzeug.security import check_password_hash


class SavedBook(BaseModel):
    """
    A book reference embedded in a user's savedBooks list.
    Descriptive fields are stored exactly as the client sent them.
    """
    book_id: str = Field(..., alias="bookId", min_length=1, description="External catalog identifier")
    authors: List[str] = Field(default_factory=list, description="Book authors")
    description: Optional[str] = Field(None, description="Book description")
    title: Optional[str] = Field(None, description="Book title")
    image: Optional[str] = Field(None, description="Cover image URL")
    link: Optional[str] = Field(None, description="Link to the book page")

    model_config = {"populate_by_name": True}

    def to_document(self) -> Dict[str, Any]:
        """Serialize using the stored (camelCase) field names."""
        return self.model_dump(by_alias=True)


class NewUser(BaseModel):
    """Validated registration input."""
    username: str = Field(..., min_length=1, description="Unique username")
    email: str = Field(..., pattern=r".+@.+\..+", description="Unique email address")
    password: str = Field(..., min_length=1, description="Plain-text password, hashed before storage")

    @validator('username', 'email', pre=True)
    def strip_whitespace(cls, v):
        """Trim surrounding whitespace like the stored schema does."""
        if isinstance(v, str):
            return v.strip()
        return v


class UserDocument(BaseModel):
    """A user as stored in MongoDB."""
    id: str = Field(..., alias="_id", description="MongoDB ObjectId as a string")
    username: str
    email: str
    password: str = Field(..., description="Password hash")
    saved_books: List[SavedBook] = Field(default_factory=list, alias="savedBooks")

    model_config = {"populate_by_name": True}

    @validator('id', pre=True)
    def stringify_object_id(cls, v):
        """Accept raw ObjectId values from the driver."""
        if isinstance(v, ObjectId):
            return str(v)
        return v

    @property
    def book_count(self) -> int:
        return len(self.saved_books)

    def is_correct_password(self, password: str) -> bool:
        """Compare a plain-text password against the stored hash."""
        return check_password_hash(self.password, password)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "UserDocument":
        return cls.model_validate(document)


class ErrorResponse(BaseModel):
    """Error response model for non-GraphQL failures."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
