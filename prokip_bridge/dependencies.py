"""
API Dependencies
================

FastAPI dependencies for the Prokip bridge.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .services import ServiceRegistry, ProkipService, create_service_registry
from .database import get_db_session
from .config import settings

# Security
security = HTTPBearer()


def get_config() -> dict:
    return settings.model_dump()


# Dependency to resolve the caller from their Prokip bearer token
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db_session = Depends(get_db_session),
    config: dict = Depends(get_config)
) -> int:
    """User id owning the presented Prokip token"""
    prokip_service = ProkipService(db_session, config)
    user_id = await prokip_service.find_user_by_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return user_id


# Dependency to get a service registry for the authenticated user
async def get_service_registry(
    db_session = Depends(get_db_session),
    current_user: int = Depends(get_current_user),
    config: dict = Depends(get_config)
) -> ServiceRegistry:
    """Get service registry with current user"""
    return create_service_registry(
        db_session=db_session,
        config=config,
        current_user=current_user
    )


# Dependency for public endpoints (webhooks, login)
async def get_public_service_registry(
    db_session = Depends(get_db_session),
    config: dict = Depends(get_config)
) -> ServiceRegistry:
    """Get service registry without authentication"""
    return create_service_registry(db_session=db_session, config=config)
