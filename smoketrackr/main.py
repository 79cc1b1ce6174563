"""
FastAPI application factory
"""
import logging
import traceback

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.responses import Response

from smoketrackr.config import get_settings
from smoketrackr.infrastructure.db.session import check_db_connection
from smoketrackr.api.v1 import (
    consumption,
    giveaways,
    import_export,
    products,
    purchases,
    reports,
    share,
    user_settings,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Log every unhandled exception with its traceback and answer 500."""

    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "\n%s\nERROR on %s %s\n%s%s",
                "=" * 60, request.method, request.url.path, traceback.format_exc(), "=" * 60,
            )
            return Response(content="Internal Server Error", status_code=500)


def create_app() -> FastAPI:
    """
    Application factory - создаёт и настраивает FastAPI приложение

    Returns:
        Настроенный FastAPI app
    """
    settings = get_settings()

    app = FastAPI(
        title="SmokeTrackr",
        debug=settings.DEBUG,
    )

    app.add_middleware(ErrorLoggingMiddleware)

    # Middleware
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SECRET_KEY
    )

    # Routers
    app.include_router(products.router)
    app.include_router(purchases.router)
    app.include_router(consumption.router)
    app.include_router(giveaways.router)
    app.include_router(reports.router)
    app.include_router(user_settings.router)
    app.include_router(import_export.router)
    app.include_router(share.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready():
        """Readiness check endpoint (проверяет доступность БД)"""
        try:
            check_db_connection()
        except SQLAlchemyError as exc:
            logger.warning("Readiness check failed: %s", exc)
            return PlainTextResponse("database unavailable", status_code=503)
        return "ok"

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "smoketrackr.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
