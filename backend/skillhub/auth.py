"""Authentication helpers and FastAPI security dependencies.

This module decodes JWT bearer tokens and provides two dependencies:
`get_current_user`, which resolves the caller to a `User` document, and
`require_admin`, which additionally insists on the admin role.

Failures are raised as `skillhub.errors` exceptions so the application's
error handler renders them like any other service failure.
"""

from typing import Optional

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import errors, models
from .config import settings
from .database import get_store
from .repositories import UserRepository
from .store import DocumentStore

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises `Unauthenticated`.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise errors.Unauthenticated('Not authorized, token expired')
    except jwt.InvalidTokenError:
        raise errors.Unauthenticated('Not authorized, token failed')


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    store: DocumentStore = Depends(get_store),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    The function extracts the bearer token from the request, decodes it
    and looks the user up in the request's store.
    """
    if credentials is None or not credentials.credentials:
        raise errors.Unauthenticated('Not authorized, no token')
    payload = decode_token(credentials.credentials)
    user_id = payload.get('user_id')
    if not user_id:
        raise errors.Unauthenticated('Not authorized, invalid token payload')
    user = UserRepository(store).get(user_id)
    if not user:
        raise errors.Unauthenticated('Not authorized, user not found')
    return user


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    """Dependency that only lets admins through."""
    if not user.is_admin:
        raise errors.Forbidden('Not authorized as an admin')
    return user
