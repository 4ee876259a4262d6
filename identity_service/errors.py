"""
Error taxonomy for the identity service. Each error carries its HTTP status and a stable error code;
one exception handler renders them in the same {"detail": {"error", "error_description"}} shape as HTTPException.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AuthError(Exception):
    status_code = 400
    error = "invalid_request"
    description = "Invalid request"

    def __init__(self, description: str | None = None):
        super().__init__(description or self.description)
        if description:
            self.description = description

    def headers(self) -> dict[str, str] | None:
        return None


class InvalidInput(AuthError):
    status_code = 400
    error = "invalid_input"
    description = "Missing or malformed request fields"


class DuplicateIdentity(AuthError):
    status_code = 400
    error = "duplicate_identity"
    description = "Username or email already registered"


class InvalidCredentials(AuthError):
    """Login failure; same message whether the email is unknown or the password is wrong."""
    status_code = 400
    error = "invalid_credentials"
    description = "Invalid credentials"


class Unauthorized(AuthError):
    status_code = 401
    error = "unauthorized"
    description = "No session token provided"


class InvalidSession(AuthError):
    """Refresh token unknown, expired or already rotated. The client must log in again."""
    status_code = 401
    error = "invalid_session"
    description = "Invalid or expired session"


class RateLimited(AuthError):
    status_code = 429
    error = "rate_limited"
    description = "Too many requests"

    def __init__(self, retry_after: int):
        super().__init__()
        self.retry_after = retry_after

    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(self.retry_after)}


class StorageFailure(AuthError):
    """Persistence I/O error. Details stay in server logs."""
    status_code = 500
    error = "storage_failure"
    description = "Internal server error"


def _render(exc: AuthError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"error": exc.error, "error_description": exc.description}},
        headers=exc.headers(),
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.error)
        return _render(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        # Malformed bodies are client input errors (400), never 422
        logger.debug("Request validation failed on %s: %s", request.url.path, exc.errors())
        return _render(InvalidInput())
