"""FastAPI dependency injection functions."""

import logging
from typing import Annotated, Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings, get_settings
from .engine import KnowledgeService
from .schemas import OwnerInfo

logger = logging.getLogger(__name__)

JWT_SECRET_NAME = "AUTH-JWT-SECRET"

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_service(request: Request) -> KnowledgeService:
    """Get the KnowledgeService from app state.

    Args:
        request: FastAPI request object

    Returns:
        KnowledgeService instance
    """
    return request.app.state.knowledge_service


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)] = None,
) -> OwnerInfo:
    """Resolve the owning user from the bearer token.

    Supports different modes based on AUTH_MODE:
    - local: Use the test owner id from env, no token required
    - jwt: Verify an HS256 token; the `sub` claim is the owner id

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if settings.auth_mode == "local":
        return OwnerInfo(owner_id=settings.local_test_owner_id, is_authenticated=True, mode="local")

    if not credentials:
        raise _unauthorized("Authentication required")

    secret = request.app.state.secrets.get_secret(JWT_SECRET_NAME)
    try:
        claims = jwt.decode(
            credentials.credentials,
            secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise _unauthorized("Invalid or expired token")

    return OwnerInfo(owner_id=claims["sub"], is_authenticated=True, mode="jwt")


# Type aliases for dependency injection
ServiceDep = Annotated[KnowledgeService, Depends(get_service)]
CurrentUserDep = Annotated[OwnerInfo, Depends(get_current_user)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
