"""Main FastAPI application"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from src.crm_tool.api.endpoints import health, import_sessions, csv_import, contacts
from src.crm_tool.config import settings
from src.crm_tool.logging_config import configure_logging
from src.crm_tool.services.import_session import clear_sessions

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"Starting CRM API in {settings.APP_ENV} environment")
    if settings.IMPORT_API_BASE_URL:
        logger.info(f"Import sessions commit over HTTP to {settings.IMPORT_API_BASE_URL}")
    else:
        logger.info("Import sessions commit in-process")
    if settings.IMPORT_MAX_WORKERS > 1:
        logger.info(f"Batch import runs with {settings.IMPORT_MAX_WORKERS} workers")

    yield

    clear_sessions()
    logger.info("Shutting down CRM API")


app = FastAPI(
    title="CRM - Contacts and Pipeline",
    description="CRM API with CSV import for contacts and deals",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(health.router, tags=["Health"])
# Session routes first: /api/import/sessions must not be captured by /api/import/{entity_type}
app.include_router(import_sessions.router, tags=["Import Sessions"])
app.include_router(csv_import.router, tags=["Import"])
app.include_router(contacts.router, tags=["Contacts"])


@app.get("/")
def root():
    return {
        "message": "CRM API",
        "environment": settings.APP_ENV,
        "docs": "/docs"
    }
