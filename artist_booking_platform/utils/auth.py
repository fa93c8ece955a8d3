"""
Bearer token verification.

Tokens are issued by the platform's auth service; this service only verifies
them and reads the acting user's id (``sub``) and role (``role``).
"""

import logging
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel

from ..domain.transition import Actor
from ..models.user import ActorRole

logger = logging.getLogger(__name__)


class TokenData(BaseModel):
    """Claims this service relies on."""
    user_id: str
    role: str


def decode_token(token: str, secret_key: str, algorithm: str) -> Optional[TokenData]:
    """
    Verify a JWT's signature and expiry and extract its claims.

    Returns:
        TokenData if the token is valid and carries both claims, None otherwise
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        logger.debug(f"Rejected bearer token: {e}")
        return None

    user_id = payload.get("sub")
    role = payload.get("role")
    if user_id is None or role is None:
        return None

    return TokenData(user_id=str(user_id), role=str(role))


def verify_token(token: str, secret_key: str, algorithm: str) -> Optional[Actor]:
    """Return the actor a token identifies, or None if it does not identify one."""
    token_data = decode_token(token, secret_key, algorithm)
    if token_data is None:
        return None

    try:
        return Actor(id=UUID(token_data.user_id), role=ActorRole(token_data.role))
    except ValueError:
        return None
