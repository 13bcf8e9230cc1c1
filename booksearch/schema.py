"""
GraphQL schema definition using Strawberry.
"""

from typing import Any, Dict, List, Optional

import strawberry
import structlog
from fastapi import Request
from graphql import GraphQLError
from strawberry.fastapi import GraphQLRouter
from strawberry.types import ExecutionContext

from booksearch import resolvers
from booksearch.errors import APIError
from booksearch.models import SavedBook, UserDocument
from booksearch.resolvers import AuthPayload, ResolverContext

logger = structlog.get_logger(__name__)


@strawberry.type
class Book:
    """A saved book reference."""

    book_id: str
    authors: List[str]
    description: Optional[str]
    title: Optional[str]
    image: Optional[str]
    link: Optional[str]

    @classmethod
    def from_model(cls, book: SavedBook) -> "Book":
        return cls(
            book_id=book.book_id,
            authors=list(book.authors),
            description=book.description,
            title=book.title,
            image=book.image,
            link=book.link,
        )


@strawberry.type
class User:
    """User type for GraphQL API."""

    id: strawberry.ID = strawberry.field(name="_id")
    username: str
    email: str
    book_count: int
    saved_books: List[Book]

    @classmethod
    def from_model(cls, user: UserDocument) -> "User":
        return cls(
            id=strawberry.ID(user.id),
            username=user.username,
            email=user.email,
            book_count=user.book_count,
            saved_books=[Book.from_model(book) for book in user.saved_books],
        )


@strawberry.type
class Auth:
    """Token plus the user it identifies."""

    token: str
    user: User

    @classmethod
    def from_payload(cls, payload: AuthPayload) -> "Auth":
        return cls(token=payload.token, user=User.from_model(payload.user))


@strawberry.input
class BookInput:
    """Input for saving a book."""

    book_id: str
    authors: Optional[List[str]] = None
    description: Optional[str] = None
    title: Optional[str] = None
    image: Optional[str] = None
    link: Optional[str] = None


def _resolver_context(info: strawberry.Info) -> ResolverContext:
    return info.context["resolvers"]


@strawberry.type
class Query:
    """Root GraphQL query type."""

    @strawberry.field
    async def user(
        self,
        info: strawberry.Info,
        id: Optional[strawberry.ID] = None,
        username: Optional[str] = None,
    ) -> Optional[User]:
        """Get a user by id or username."""
        found = await resolvers.user_resolver(
            _resolver_context(info),
            user_id=str(id) if id is not None else None,
            username=username,
        )
        return User.from_model(found)

    @strawberry.field
    async def me(self, info: strawberry.Info) -> Optional[User]:
        """Get the current authenticated user."""
        found = await resolvers.me_resolver(_resolver_context(info))
        return User.from_model(found)


@strawberry.type
class Mutation:
    """Root GraphQL mutation type."""

    @strawberry.mutation
    async def add_user(
        self, info: strawberry.Info, username: str, email: str, password: str
    ) -> Optional[Auth]:
        """Register a user and return a signed token."""
        payload = await resolvers.add_user_resolver(
            _resolver_context(info), username=username, email=email, password=password
        )
        return Auth.from_payload(payload)

    @strawberry.mutation
    async def login(
        self,
        info: strawberry.Info,
        password: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[Auth]:
        """Log in by username or email."""
        payload = await resolvers.login_resolver(
            _resolver_context(info), password=password, username=username, email=email
        )
        return Auth.from_payload(payload)

    @strawberry.mutation
    async def save_book(self, info: strawberry.Info, book_data: BookInput) -> Optional[User]:
        """Add a book to the current user's saved books."""
        data = {
            key: value
            for key, value in strawberry.asdict(book_data).items()
            if value is not None
        }
        updated = await resolvers.save_book_resolver(_resolver_context(info), data)
        return User.from_model(updated)

    @strawberry.mutation
    async def delete_book(self, info: strawberry.Info, book_id: str) -> Optional[User]:
        """Remove a book from the current user's saved books."""
        updated = await resolvers.delete_book_resolver(_resolver_context(info), book_id)
        return User.from_model(updated)


class BookSearchSchema(strawberry.Schema):
    """Schema that reports resolver failures through structlog."""

    def process_errors(
        self,
        errors: List[GraphQLError],
        execution_context: Optional[ExecutionContext] = None,
    ) -> None:
        for error in errors:
            original = error.original_error
            if isinstance(original, APIError):
                logger.warning(
                    "GraphQL operation rejected",
                    kind=original.kind.value,
                    message=original.message,
                    path=error.path,
                )
            elif original is None:
                logger.warning("Invalid GraphQL request", message=error.message)
            else:
                logger.error(
                    "GraphQL operation failed",
                    error=str(original),
                    error_type=type(original).__name__,
                    path=error.path,
                )


# Create the GraphQL schema
schema = BookSearchSchema(query=Query, mutation=Mutation)


def create_graphql_router(graphiql: bool = True) -> GraphQLRouter:
    """Create a GraphQL router for FastAPI."""

    async def get_context(request: Request) -> Dict[str, Any]:
        """Build the resolver context from application state and the request token."""
        tokens = request.app.state.tokens
        user = tokens.get_request_user(request)
        structlog.contextvars.clear_contextvars()
        if user is not None:
            structlog.contextvars.bind_contextvars(user_id=user.id)
        return {
            "request": request,
            "resolvers": ResolverContext(
                users=request.app.state.users,
                tokens=tokens,
                user=user,
            ),
        }

    return GraphQLRouter(
        schema,
        path="/graphql",
        graphql_ide="graphiql" if graphiql else None,
        context_getter=get_context,
    )
