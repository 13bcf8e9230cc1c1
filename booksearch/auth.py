"""
Token signing and verification for the GraphQL API.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Request
from jwt.exceptions import InvalidTokenError

from booksearch.models import UserDocument

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TokenIdentity:
    """Identity decoded from a valid token."""
    id: str
    username: str
    email: str


def extract_token(request: Request) -> Optional[str]:
    """
    Pull a raw token from the request.
    
    The Authorization header wins; a ``token`` query parameter is accepted
    for clients that cannot set headers.
    """
    authorization = request.headers.get("authorization")
    if authorization:
        token = authorization.split(" ")[-1].strip()
        return token or None
    token = request.query_params.get("token")
    if token:
        return token.strip() or None
    return None


class TokenManager:
    """Issues and verifies signed identity tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expire_minutes: int = 120
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def sign_token(self, user: UserDocument) -> str:
        """
        Sign a token for a user.
        
        Args:
            user: The user the token identifies
            
        Returns:
            Encoded JWT
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.id,
            "username": user.username,
            "email": user.email,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[TokenIdentity]:
        """
        Verify a token.
        
        Args:
            token: Encoded JWT
            
        Returns:
            TokenIdentity if the token is valid, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except InvalidTokenError as e:
            logger.warning("Invalid token", error=str(e))
            return None

        return TokenIdentity(
            id=payload["sub"],
            username=payload.get("username", ""),
            email=payload.get("email", ""),
        )

    def get_request_user(self, request: Request) -> Optional[TokenIdentity]:
        """Resolve the identity for a request; anonymous when there is no valid token."""
        token = extract_token(request)
        if not token:
            return None
        return self.verify_token(token)
