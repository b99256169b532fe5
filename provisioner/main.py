"""
Workflow Provisioner - FastAPI Application
Provisions GitHub Actions workflows into users' repositories
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from provisioner.api.routes import cron, health, templates, workflows
from provisioner.config import settings
from provisioner.core.exceptions import ProvisioningError
from provisioner.core.logger import configure_logging
from provisioner.database import init_db

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting %s...", settings.app_name)
    try:
        if init_db():
            logger.info("Audit store initialized")
        else:
            logger.warning("DATABASE_URL not set; audit and config records are disabled")
    except Exception as e:
        logger.error("Audit store initialization failed: %s", e)
    logger.info("API running on %s environment", settings.app_env)
    yield
    logger.info("Shutting down %s...", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="Provision GitHub Actions workflows and scheduled jobs",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ProvisioningError)
async def provisioning_error_handler(request: Request, exc: ProvisioningError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.get("/")
async def root() -> dict:
    return {
        "name": settings.app_name,
        "environment": settings.app_env,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


prefix = settings.api_v1_prefix
app.include_router(health.router, prefix=prefix, tags=["Health"])
app.include_router(cron.router, prefix=f"{prefix}/cron", tags=["Cron"])
app.include_router(workflows.router, prefix=prefix, tags=["Workflows"])
app.include_router(templates.router, prefix=f"{prefix}/templates", tags=["Templates"])
