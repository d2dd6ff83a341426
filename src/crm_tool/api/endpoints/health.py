"""Health check endpoint"""
from fastapi import APIRouter
from sqlalchemy import text

from src.crm_tool.api.deps import DbSession
from src.crm_tool.config import settings

router = APIRouter()


@router.get("/health")
def health_check(db: DbSession):
    db_status = "unknown"
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"

    return {
        "status": "ok",
        "environment": settings.APP_ENV,
        "database": db_status
    }
