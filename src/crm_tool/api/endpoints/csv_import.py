"""Batch import endpoints for mapped CSV records"""
import logging
from typing import Any, Dict, List
from fastapi import APIRouter, Body, HTTPException

from src.crm_tool.api.deps import ImportEntity, SessionFactory
from src.crm_tool.schemas.csv_import import FieldSpec
from src.crm_tool.services.entities import FIELD_SPECS
from src.crm_tool.services.import_service import build_import_response, import_records

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/import")


@router.get("/{entity_type}/fields", response_model=List[FieldSpec])
def get_import_fields(entity_type: ImportEntity):
    return FIELD_SPECS[entity_type]


@router.post("/{entity_type}", status_code=201)
def import_entities(
    entity_type: ImportEntity,
    session_factory: SessionFactory,
    payload: Dict[str, Any] = Body(...)
):
    """
    Import already-mapped records, one at a time.
    Records that fail validation are counted and skipped; the rest are kept.
    """
    records = payload.get(entity_type.value)
    if not isinstance(records, list) or not records:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {entity_type.value} data. Expected an array of {entity_type.value}."
        )

    try:
        result = import_records(session_factory, entity_type, records)
    except Exception:
        logger.exception(f"Error in {entity_type.value} import")
        raise HTTPException(status_code=500, detail=f"Failed to import {entity_type.value}")

    return build_import_response(result, entity_type)
