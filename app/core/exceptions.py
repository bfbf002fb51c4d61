"""
API Error Taxonomy

Every error a client can see maps to one of five codes:

    UNAUTHORIZED           401  no or invalid session
    FORBIDDEN              403  authenticated but lacking role/membership
    BAD_REQUEST            400  malformed input or missing precondition
    NOT_FOUND              404  entity absent or not owned by the caller's organization
    INTERNAL_SERVER_ERROR  500  unexpected failure, generic message only

Raise these from endpoints and dependencies. The handler registered in
app.main renders them as JSON:

    {"error": "Document not found", "code": "NOT_FOUND"}
"""

from typing import Any, Dict

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base class for errors rendered as {error, code} JSON."""

    code: str = "INTERNAL_SERVER_ERROR"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class UnauthorizedError(AppError):
    code = "UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class BadRequestError(AppError):
    code = "BAD_REQUEST"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InternalServerError(AppError):
    pass


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as {error, code} JSON."""
    headers = None
    if isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )
