"""
GraphQL Resolvers
Handlers for the user/me queries and the account and saved-book mutations.

Each handler takes the request context explicitly, performs one
repository call and either returns a result or raises an APIError.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError

from booksearch.auth import TokenIdentity, TokenManager
from booksearch.database import UserRepository
from booksearch.errors import AuthenticationError, InvalidInputError, NotFoundError
from booksearch.models import NewUser, SavedBook, UserDocument

logger = structlog.get_logger(__name__)


@dataclass
class AuthPayload:
    """Result of addUser and login."""
    token: str
    user: UserDocument


class ResolverContext:
    """Per-request dependencies passed to every resolver."""

    def __init__(
        self,
        users: UserRepository,
        tokens: TokenManager,
        user: Optional[TokenIdentity] = None
    ):
        self.users = users
        self.tokens = tokens
        self.user = user


def _require_user(ctx: ResolverContext) -> TokenIdentity:
    if ctx.user is None:
        raise AuthenticationError("You need to be logged in!")
    return ctx.user


def _validation_message(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item.get("loc", ()))
        parts.append(f"{field}: {item.get('msg')}" if field else item.get("msg"))
    return "; ".join(parts)


# ============================================
# QUERY RESOLVERS
# ============================================

async def user_resolver(
    ctx: ResolverContext,
    user_id: Optional[str] = None,
    username: Optional[str] = None
) -> UserDocument:
    """Resolver for the user query"""
    found = await ctx.users.find_by_id_or_username(user_id, username)
    if found is None:
        raise NotFoundError("Cannot find a user with this id or username!")
    return found


async def me_resolver(ctx: ResolverContext) -> UserDocument:
    """Resolver for the me query"""
    identity = _require_user(ctx)
    found = await ctx.users.find_by_id(identity.id)
    if found is None:
        raise NotFoundError("Cannot find a user with this id!")
    return found


# ============================================
# MUTATION RESOLVERS
# ============================================

async def add_user_resolver(
    ctx: ResolverContext,
    username: str,
    email: str,
    password: str
) -> AuthPayload:
    """Resolver for the addUser mutation"""
    try:
        new_user = NewUser(username=username, email=email, password=password)
    except ValidationError as e:
        raise InvalidInputError(_validation_message(e)) from e

    user = await ctx.users.create(new_user)
    token = ctx.tokens.sign_token(user)
    return AuthPayload(token=token, user=user)


async def login_resolver(
    ctx: ResolverContext,
    password: str,
    username: Optional[str] = None,
    email: Optional[str] = None
) -> AuthPayload:
    """
    Resolver for the login mutation.
    
    The two failure messages differ, which tells a caller whether the
    account exists.
    """
    # Registration stores trimmed identifiers
    username = username.strip() if username is not None else None
    email = email.strip() if email is not None else None
    user = await ctx.users.find_by_username_or_email(username, email)
    if user is None:
        logger.info("Login failed", reason="unknown_user")
        raise AuthenticationError("Cannot find this user")

    if not user.is_correct_password(password):
        logger.info("Login failed", reason="wrong_password", user_id=user.id)
        raise AuthenticationError("Wrong password!")

    token = ctx.tokens.sign_token(user)
    logger.info("User logged in", user_id=user.id)
    return AuthPayload(token=token, user=user)


async def save_book_resolver(ctx: ResolverContext, book_data: Dict[str, Any]) -> UserDocument:
    """Resolver for the saveBook mutation"""
    identity = _require_user(ctx)
    try:
        book = SavedBook.model_validate(book_data)
    except ValidationError as e:
        raise InvalidInputError(_validation_message(e)) from e

    updated = await ctx.users.add_saved_book(identity.id, book)
    if updated is None:
        raise NotFoundError("Cannot save book")
    return updated


async def delete_book_resolver(ctx: ResolverContext, book_id: str) -> UserDocument:
    """Resolver for the deleteBook mutation"""
    identity = _require_user(ctx)
    updated = await ctx.users.remove_saved_book(identity.id, book_id)
    if updated is None:
        raise NotFoundError("Couldn't find user with this id!")
    return updated
