"""Voxen Backend API - Main Application"""
import structlog
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError

from voxen.config import get_settings
from voxen.log import configure_logging
from voxen.api.v1.router import api_router
from voxen.models.database import init_db, close_db
from voxen.services.chain_client import close_chain_client
from voxen.services.proposal_service import ProposalNotFoundError, ProposalValidationError

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Voxen API", version=settings.app_version)

    if settings.auto_create_tables:
        await init_db()

    yield

    # Cleanup
    await close_chain_client()
    await close_db()
    logger.info("Voxen API shutdown complete")


async def validation_error_handler(request: Request, exc: ProposalValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def not_found_handler(request: Request, exc: ProposalNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc) or "Proposal not found"})


async def store_unavailable_handler(request: Request, exc: DBAPIError):
    if not isinstance(exc, OperationalError) and not exc.connection_invalidated:
        raise exc
    logger.error("Database unavailable", path=request.url.path, error=str(exc.orig))
    return JSONResponse(
        status_code=503,
        content={"detail": "Database temporarily unavailable", "retryable": True},
    )


def create_app() -> FastAPI:
    """Create FastAPI application"""
    configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="API for Voxen community voting",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ProposalValidationError, validation_error_handler)
    app.add_exception_handler(ProposalNotFoundError, not_found_handler)
    app.add_exception_handler(DBAPIError, store_unavailable_handler)

    # Include routers
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.app_version,
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "voxen.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
