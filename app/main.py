"""TaskBoard Collaboration API - Main Application Module.

This module initializes the FastAPI application with configuration,
middleware, routing, and lifecycle management for the collaborative
Kanban backend.
"""

import logging
import sys
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

# Add the project root to Python path if running directly
if __name__ == "__main__":
    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import ConfigValidator, settings
from app.core.logging import setup_logging
from app.database import AsyncSessionLocal, engine
from models import Base
from models.base import utcnow

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Manage application lifecycle events."""
    logger.info("Starting %s (%s)", settings.app_name, settings.environment.value)

    if settings.is_production:
        ConfigValidator.validate_required_settings()

    # Development mode: auto-create tables; elsewhere use `alembic upgrade head`
    if settings.is_development:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")

    yield

    logger.info("Shutting down %s", settings.app_name)
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Collaborative Kanban boards with invitations and an audit trail",
        version=settings.version,
        lifespan=lifespan,
        docs_url=settings.docs_url if settings.is_development else None,
        redoc_url=settings.redoc_url if settings.is_development else None,
    )

    setup_middleware(app)
    setup_exception_handlers(app)
    setup_routers(app)

    return app


def setup_middleware(app: FastAPI):
    """Configure application middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def _error_body(request: Request, message: str, error_code: str, details) -> dict:
    return {
        "status": "error",
        "message": message,
        "error_code": error_code,
        "details": details,
        "timestamp": utcnow().isoformat(),
        "request_id": getattr(request.state, "request_id", None),
    }


def setup_exception_handlers(app: FastAPI):
    """Configure global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Application exceptions carry a structured detail
        if isinstance(exc.detail, dict) and "message" in exc.detail:
            message = exc.detail["message"]
            error_code = exc.detail.get("error_code", "HTTP_ERROR")
            details = exc.detail.get("details")
        else:
            message = str(exc.detail) if exc.detail else "An error occurred"
            error_code = "HTTP_ERROR"
            details = None

        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, message)

        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, message, error_code, details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            error_dict = {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "Validation error")),
                "type": error.get("type", "value_error"),
            }
            if "input" in error:
                error_dict["input"] = str(error["input"])
            errors.append(error_dict)

        return JSONResponse(
            status_code=422,
            content=_error_body(request, "Validation error", "VALIDATION_ERROR", errors),
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Unhandled database error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body(request, "A database error occurred", "DATABASE_ERROR", None),
        )


def setup_routers(app: FastAPI):
    """Configure application routers."""
    from app.domains.audit.controller import router as audit_router
    from app.domains.collaborator.controller import router as collaborator_router
    from app.domains.column.controller import router as column_router
    from app.domains.comment.controller import router as comment_router
    from app.domains.invitation.controller import router as invitation_router
    from app.domains.invitation_link.controller import router as invitation_link_router
    from app.domains.member.controller import router as member_router
    from app.domains.profile.controller import router as profile_router
    from app.domains.project.controller import router as project_router
    from app.domains.task.controller import router as task_router
    from app.domains.user.controller import router as user_router

    async def health_check():
        """Report service and database health."""
        db_status = "healthy"
        try:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Health check could not reach the database")
            db_status = "unhealthy"

        payload = {
            "status": "healthy" if db_status == "healthy" else "degraded",
            "version": settings.version,
            "environment": settings.environment.value,
            "timestamp": utcnow().isoformat(),
            "services": {
                "database": db_status,
                "email": "configured" if settings.has_email_enabled else "test_mode",
            },
        }
        return JSONResponse(status_code=200 if db_status == "healthy" else 503, content=payload)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["health"])
    app.add_api_route("/api/health", health_check, methods=["GET"], tags=["health"])

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "docs_url": settings.docs_url if settings.is_development else None,
        }

    app.include_router(user_router)
    app.include_router(profile_router)
    app.include_router(project_router)
    app.include_router(column_router)
    app.include_router(task_router)
    app.include_router(comment_router)
    app.include_router(collaborator_router)
    app.include_router(member_router)
    app.include_router(invitation_router)
    app.include_router(invitation_link_router)
    app.include_router(audit_router)


# Create the application instance
app = create_app()


def main():
    """Entry point for running the application directly."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload or settings.is_development,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
