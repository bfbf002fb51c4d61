from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from uuid import UUID
import logging

from app.ai.rag.file_search import FileSearchClient, get_file_search_client
from app.core.exceptions import UnauthorizedError, ForbiddenError, InternalServerError
from app.core.security import verify_access_token
from app.db.database import get_db
from app.models import User
from app.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

# Security scheme for Swagger UI. Missing credentials are reported as
# UNAUTHORIZED by get_current_user rather than by FastAPI.
security = HTTPBearer(auto_error=False)


# =====================================================
# Get Current user
# =====================================================
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency that validates the bearer token and returns the current user.

    Raises:
        UnauthorizedError: If token is missing or invalid, or the user is
            unknown or inactive
    """
    if credentials is None:
        raise UnauthorizedError("Authentication required")

    subject = verify_access_token(credentials.credentials)
    if subject is None:
        raise UnauthorizedError("Invalid or expired token")

    try:
        user_id = UUID(subject)
    except ValueError:
        raise UnauthorizedError("Invalid or expired token")

    user = await UserRepository(db).get_by_id(user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("Invalid or expired token")

    return user


async def require_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Dependency for back-office endpoints.

    Admin is a platform role on the user, independent of any organization.
    """
    if not current_user.is_admin:
        logger.warning(f"Non-admin user {current_user.id} tried to reach an admin endpoint")
        raise ForbiddenError("Admin access required")
    return current_user


# =====================================================
# Remote Index Client
# =====================================================
def get_file_search() -> FileSearchClient:
    """Provide the File Search client; overridden in tests."""
    try:
        return get_file_search_client()
    except ValueError as e:
        logger.error(f"File Search client unavailable: {e}")
        raise InternalServerError()
