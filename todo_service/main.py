"""
Todo service (resource server). Every route except /health requires a valid accessToken cookie,
verified locally with the shared signing secret. Mounted behind the gateway at /api/todo. Port 3001 by default.
"""
import logging
import os
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from session_auth.settings import TokenSettings, load_token_settings
from session_auth.verification import AccessTokenVerifier
from todo_service.database import init_db
from todo_service.todos import router as todos_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    init_db()
    yield


def create_app(
    settings: TokenSettings | None = None,
    *,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    settings = settings or load_token_settings()
    app = FastAPI(title="Todo Service", version="1.0.0", lifespan=lifespan)
    app.state.verifier = AccessTokenVerifier(settings, **({"clock": clock} if clock is not None else {}))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        logger.debug("Request validation failed on %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=400,
            content={"detail": {"error": "invalid_input", "error_description": "Missing or malformed request fields"}},
        )

    # Registered before the todo routes so /health never reaches /{todo_id}
    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "todo_service"}

    app.include_router(todos_router, tags=["todos"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "todo_service.main:app",
        host="127.0.0.1",
        port=int(os.environ.get("PORT", "3001")),
        reload=True,
    )
