"""API dependencies - database sessions, entity types and import committers"""
from typing import Annotated
from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session, sessionmaker

from src.crm_tool.config import settings
from src.crm_tool.database import get_db, get_session_factory
from src.crm_tool.services.entities import EntityType, resolve_entity_type
from src.crm_tool.services.import_committer import (
    HttpImportCommitter,
    ImportCommitter,
    LocalImportCommitter,
)


def get_entity_type(entity_type: str) -> EntityType:
    try:
        return resolve_entity_type(entity_type)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


def get_import_committer(
    session_factory: sessionmaker = Depends(get_session_factory)
) -> ImportCommitter:
    if settings.IMPORT_API_BASE_URL:
        return HttpImportCommitter(
            base_url=settings.IMPORT_API_BASE_URL,
            timeout=settings.IMPORT_API_TIMEOUT_SECONDS
        )
    return LocalImportCommitter(session_factory)


DbSession = Annotated[Session, Depends(get_db)]
SessionFactory = Annotated[sessionmaker, Depends(get_session_factory)]
ImportEntity = Annotated[EntityType, Depends(get_entity_type)]
Committer = Annotated[ImportCommitter, Depends(get_import_committer)]
