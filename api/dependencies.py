"""
API dependencies for dependency injection
"""

import logging
from typing import Generator, Optional
from uuid import UUID

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import ForbiddenError, UnauthorizedError
from domain.enums import UserRoleType
from domain.models import get_db_session
from repositories import UserRepository

logger = logging.getLogger("nutricoach.api.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI routes.

    Usage:
        @router.get("/example")
        def example(db: Session = Depends(get_db)):
            # Use db session here
            pass
    """
    yield from get_db_session()


def get_http_client() -> Generator[httpx.Client, None, None]:
    """Outbound HTTP client for product sources, closed after the request"""
    with httpx.Client(timeout=settings.http_timeout_sec) as client:
        yield client


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> UUID:
    """
    Verify the bearer token issued by the identity provider and return its
    subject as the user id.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Niet ingelogd")
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
        )
    except JWTError as e:
        logger.info("Rejected access token: %s", e)
        raise UnauthorizedError("Ongeldige of verlopen sessie")

    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        raise UnauthorizedError("Ongeldige of verlopen sessie")


def require_admin(
    user_id: UUID = Depends(get_current_user_id), db: Session = Depends(get_db)
) -> UUID:
    """Current user id, provided the user has the admin role"""
    if not UserRepository(db).has_role(user_id, UserRoleType.ADMIN.value):
        logger.warning("User %s attempted an admin operation", user_id)
        raise ForbiddenError("Geen rechten")
    return user_id
