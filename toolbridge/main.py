"""
ToolBridge - Integration Tool Registry & Dispatch
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import files, integration_api, integrations, mcp, organisations, system
from .core.config import settings
from .core.database import create_tables
from .core.errors import DispatchError, dispatch_error_handler, request_validation_error_handler
from .integrations import build_registry
from .services.file_share import FileShareService

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan"""
    # Startup
    await create_tables()

    file_share = FileShareService()
    app.state.file_share = file_share
    # Duplicate connector types or tool names abort startup here
    app.state.registry = build_registry(settings, file_share=file_share).freeze()
    logger.info(f"Registered {len(app.state.registry)} connectors: {', '.join(app.state.registry.types())}")

    yield
    # Shutdown
    pass


# Create FastAPI app
app = FastAPI(
    title="ToolBridge",
    description="Integration tool registry and token-authenticated dispatch",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(DispatchError, dispatch_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)

# Include routers
app.include_router(mcp.router)
app.include_router(integration_api.router)
app.include_router(integrations.router)
app.include_router(organisations.router)
app.include_router(files.router)
app.include_router(system.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "ToolBridge",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "tools": "GET /api/mcp/tools",
            "execute": "POST /api/mcp/execute",
            "integration_api": "GET /api/integrations/{org_uuid}",
            "connectors": "GET /integrations/connectors",
            "health": "GET /system/health",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
