from typing import Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

logger = structlog.get_logger()


class EduAlertError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "An unexpected error occurred"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthenticationError(EduAlertError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication required"


class AuthorizationError(EduAlertError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Insufficient permissions"


class ValidationError(EduAlertError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"

    def __init__(self, detail: Optional[str] = None, field: Optional[str] = None):
        self.field = field
        super().__init__(detail)


class NotFoundError(EduAlertError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ConflictError(EduAlertError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid state for this operation"


class RateLimitError(EduAlertError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Too many requests"


class UpstreamError(EduAlertError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "An upstream service is unavailable"


class PersistenceError(EduAlertError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Database operation failed"

    def __init__(self, detail: Optional[str] = None, code: Optional[str] = None):
        self.code = code
        super().__init__(detail)


async def edualert_exception_handler(request: Request, exc: EduAlertError):
    """
    Domain errors carry their own status code.
    """
    content = {"detail": exc.detail}
    if isinstance(exc, ValidationError) and exc.field:
        content["field"] = exc.field
    if isinstance(exc, PersistenceError):
        content["code"] = exc.code
        logger.error("persistence_error", error=exc.detail, code=exc.code, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content=content)

async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all for unhandled exceptions.
    Prevents stack trace leakage in production.
    """
    logger.error("unhandled_exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred. Please contact support."},
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Standard HTTP exception handler.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Request body/query validation. Reported as 400 naming the first bad field.
    """
    errors = exc.errors()
    field = None
    message = "Invalid request"
    if errors:
        first = errors[0]
        loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
        field = loc[-1] if loc else None
        if first.get("type") == "missing" and field:
            message = f"{field} is required"
        elif field:
            message = f"Invalid value for {field}: {first.get('msg')}"
        else:
            message = first.get("msg", message)
    logger.warning("validation_error", field=field, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": message, "field": field},
    )
