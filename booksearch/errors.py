"""
Error taxonomy for the GraphQL resolvers.

Every error carries a machine-readable kind that is exposed to clients
as ``extensions.code`` on the GraphQL error.
"""

from enum import Enum
from typing import Dict


class ErrorKind(str, Enum):
    """Kinds of failure a resolver can signal."""
    UNAUTHENTICATED = "UNAUTHENTICATED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INVALID = "INVALID"


class APIError(Exception):
    """Base class for errors raised by resolvers."""

    kind: ErrorKind = ErrorKind.INVALID

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def extensions(self) -> Dict[str, str]:
        # graphql-core copies this onto the located GraphQLError
        return {"code": self.kind.value}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class AuthenticationError(APIError):
    """Missing session or rejected credentials."""
    kind = ErrorKind.UNAUTHENTICATED


class NotFoundError(APIError):
    """The requested user does not exist."""
    kind = ErrorKind.NOT_FOUND


class ConflictError(APIError):
    """A unique field (username or email) is already taken."""
    kind = ErrorKind.CONFLICT


class InvalidInputError(APIError):
    """Client input failed validation."""
    kind = ErrorKind.INVALID
