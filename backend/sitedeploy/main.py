import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.deps import get_deploy_service, get_github_service
from .api.v1 import deployments, history, preview
from .config import get_settings
from .core.exceptions import ConfigurationError, SourceDirectoryError, UploadFailedError, UpstreamError
from .schemas import HealthCheck
from .services.deploy import DeployService
from .services.github import GitHubPagesService

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

app = FastAPI(
    title="sitedeploy API",
    description="Company website deployment and preview API",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "missing": exc.missing},
    )


@app.exception_handler(UploadFailedError)
async def upload_failed_handler(request: Request, exc: UploadFailedError):
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "errors": exc.errors},
    )


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "upstream_status": exc.status_code},
    )


@app.exception_handler(SourceDirectoryError)
async def source_directory_error_handler(request: Request, exc: SourceDirectoryError):
    logger.error(f"Site directory {exc.path} unreadable: {exc.error}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled exceptions."""
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": str(exc) if settings.environment == "development" else None
        }
    )


# Health check endpoint
@app.get("/api/v1/health", response_model=HealthCheck, tags=["Health"])
async def health_check(
    deploy_service: DeployService = Depends(get_deploy_service),
    github_service: GitHubPagesService = Depends(get_github_service),
):
    """Health check with configuration presence flags (never the values)."""
    return HealthCheck(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        version=VERSION,
        qiniu=deploy_service.check_config(),
        github=github_service.check_config(),
    )


# API routes
app.include_router(deployments.router, prefix="/api/v1")
app.include_router(history.router, prefix="/api/v1")
app.include_router(preview.router)


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": "sitedeploy API",
        "version": VERSION,
        "docs": "/docs"
    }
