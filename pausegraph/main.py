"""
PauseGraph - FastAPI Application Entry Point.

An async workflow engine whose sessions can pause for human input and resume
later from a checkpoint.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from pausegraph.config import Settings, settings as default_settings
from pausegraph.api.routes import workflows
from pausegraph.workflows.registry import WorkflowRegistry, create_default_registry


logger = logging.getLogger(__name__)


DESCRIPTION = """
## Workflow Engine API

A graph workflow engine with human-in-the-loop suspend and resume.

### Features
- **Nodes**: Python functions returning partial state updates
- **Edges**: Direct, conditional and router-driven flow between nodes
- **Interrupts**: A node can pause its session to ask for input
- **Checkpoints**: Every completed step is persisted per session

### Quick Start
1. List workflows: `GET /workflows`
2. Start a session: `POST /workflows/{name}/sessions/{session_id}/invoke`
3. Answer a pause: `POST /workflows/{name}/sessions/{session_id}/resume`
4. Inspect it: `GET /workflows/{name}/sessions/{session_id}`

### Demo Workflows
`flight-selection` and `flight-refinement`
"""


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[WorkflowRegistry] = None
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Application settings (module settings when not provided)
        registry: Workflow registry (built from settings when not provided)
    """
    settings = settings or default_settings

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if registry is None:
        registry = create_default_registry(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Workflows: {[w.name for w in registry.list_workflows()]}")

        yield

        # Shutdown
        logger.info("Shutting down...")
        await registry.close()

    app = FastAPI(
        title=settings.APP_NAME,
        description=DESCRIPTION,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(workflows.router)

    # ============================================================
    # Root Endpoints
    # ============================================================

    @app.get("/", tags=["Root"])
    async def root():
        """API root - returns basic info and links."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "description": "A graph workflow engine with human-in-the-loop suspend/resume",
            "docs": "/docs",
            "redoc": "/redoc",
            "endpoints": {
                "workflows": "/workflows",
                "invoke": "/workflows/{name}/sessions/{session_id}/invoke",
                "resume": "/workflows/{name}/sessions/{session_id}/resume",
                "session": "/workflows/{name}/sessions/{session_id}",
            },
            "demo_workflows": [w.name for w in registry.list_workflows()],
        }

    @app.get("/health", tags=["Root"])
    async def health():
        """Health check endpoint."""
        sessions = await registry.store.list_sessions()
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "checkpoint_backend": settings.CHECKPOINT_BACKEND,
            "workflows_count": len(registry),
            "sessions_count": len(sessions),
        }

    # ============================================================
    # Error Handlers
    # ============================================================

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler for unhandled errors."""
        logger.exception(f"Unhandled error: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
            },
        )

    return app


app = create_app()
