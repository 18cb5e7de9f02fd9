import logging
import warnings
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from billdesk.config import settings
from billdesk.core.errors import register_error_handlers
from billdesk.core.logging import configure_logging
from billdesk.core.middleware import AccessLogMiddleware, RequestIDMiddleware
from billdesk.routers import admin, audit, auth, bills, files, reports

# Validate session secret in production
if settings.is_production and settings.secret_key == "change-me-in-production":
    raise RuntimeError(
        "SECRET_KEY must be set to a secure random value in production. "
        "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
    )

if not settings.is_production and settings.secret_key == "change-me-in-production":
    warnings.warn("SECRET_KEY is using default value. Set it for production.", stacklevel=1)

configure_logging()
logger = logging.getLogger("billdesk")


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Create database tables on startup if they don't exist."""
    from billdesk.dependencies import engine
    # Import all models so Base.metadata is populated
    import billdesk.models  # noqa: F401
    from billdesk.models.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables verified/created")
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Last added = outermost. CORS outermost so error responses carry CORS headers.
app.add_middleware(RequestIDMiddleware)
app.add_middleware(AccessLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-request-id"],
)

register_error_handlers(app)

app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(reports.router)
app.include_router(bills.router)
app.include_router(files.router)
app.include_router(audit.router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "app": settings.app_name, "version": "0.1.0"}


def serve() -> None:
    import uvicorn

    uvicorn.run(
        "billdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    serve()
