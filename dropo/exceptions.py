import logging

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from .core.config import settings

logger = logging.getLogger(__name__)

GENERIC_OTP_MESSAGE = "Invalid or expired OTP."
GENERIC_SESSION_MESSAGE = "Invalid or expired session. Please sign in again."


class AuthError(Exception):
    """Base class for failures raised by the authentication core."""

    status_code: int = 400
    error_code: str = "AUTH_ERROR"
    message: str = "Authentication failed."

    def __init__(self, detail: str = None):
        # detail is for logs only; clients receive ``message``
        self.detail = detail or self.message
        super().__init__(self.detail)


class MalformedRequestError(AuthError):
    error_code = "MALFORMED_REQUEST"
    message = "Malformed request."


class MalformedTokenError(AuthError):
    error_code = "MALFORMED_TOKEN"
    message = "Malformed refresh token."


class ChallengeError(AuthError):
    error_code = "INVALID_OTP"
    message = GENERIC_OTP_MESSAGE


class ChallengeNotFoundError(ChallengeError):
    pass


class InvalidCodeError(ChallengeError):
    pass


class ChallengeExpiredError(ChallengeError):
    error_code = "OTP_EXPIRED"
    message = "OTP expired. Please request a new code."


class SessionError(AuthError):
    status_code = 401
    error_code = "INVALID_SESSION"
    message = GENERIC_SESSION_MESSAGE


class SessionNotFoundError(SessionError):
    pass


class SessionExpiredError(SessionError):
    pass


class RefreshTokenReuseError(SessionError):
    pass


class RateLimitExceededError(AuthError):
    status_code = 429
    error_code = "RATE_LIMIT_EXCEEDED"
    message = "Too many OTP requests. Please try again later."


class ConfigurationError(AuthError):
    status_code = 500
    error_code = "INTERNAL_ERROR"
    message = "Internal server error"


def create_error_response(error_message: str, error_code: str = None) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message,
        "code": error_code,
    }


async def auth_exception_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render domain errors without leaking which check failed"""
    if isinstance(exc, ConfigurationError):
        logger.error(f"Configuration error on {request.url.path}: {exc.detail}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.error_code),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", "UNAUTHENTICATED"),
            headers={"WWW-Authenticate": "Bearer"},
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail),
        headers=getattr(exc, "headers", None),
    )


def internal_error_detail(exc: Exception) -> str:
    return f"Internal server error: {exc}" if settings.DEBUG else "Internal server error"
