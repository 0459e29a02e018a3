"""FastAPI application factory."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rfp_workflow.api.routes import router
from rfp_workflow.config import get_settings
from rfp_workflow.db.session import init_db, session_scope
from rfp_workflow.errors import RFPWorkflowError
from rfp_workflow.providers import ModelRegistry
from rfp_workflow.utils.logging import configure_from_settings, get_logger


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info("Starting RFP Workflow API")
    init_db()
    with session_scope() as session:
        ModelRegistry(session).seed()
    yield
    logger.info("Shutting down RFP Workflow API")


async def handle_workflow_error(request: Request, exc: RFPWorkflowError) -> JSONResponse:
    """Render service errors as ``{"detail", "code", ...}`` bodies."""
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
    else:
        logger.warning("Request rejected", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application.
    """
    settings = get_settings()
    configure_from_settings()

    app = FastAPI(
        title="RFP Workflow API",
        description="RFP analysis, discovery questions and market research using LLMs",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RFPWorkflowError, handle_workflow_error)

    # Include routers
    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "RFP Workflow API",
            "version": "1.0.0",
            "docs": "/docs",
        }

    return app


# Create app instance for uvicorn
app = create_app()
