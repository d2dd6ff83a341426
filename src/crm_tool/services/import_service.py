"""Server-side import of already-mapped records"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from src.crm_tool.config import get_settings
from src.crm_tool.schemas.csv_import import ImportResult
from src.crm_tool.services.batch_ingestor import ingest
from src.crm_tool.services.entities import EntityType, build_create_fn

logger = logging.getLogger(__name__)


def format_import_message(result: ImportResult, entity_type: EntityType) -> str:
    return (
        f"Successfully imported {result.succeeded_count} out of "
        f"{result.attempted} {entity_type.value}"
    )


def import_records(
    session_factory: sessionmaker,
    entity_type: EntityType,
    records: List[Dict[str, Any]],
    max_workers: Optional[int] = None
) -> ImportResult:
    if max_workers is None:
        max_workers = get_settings().IMPORT_MAX_WORKERS

    logger.info(f"Importing {len(records)} {entity_type.value} (workers={max_workers})")
    create_fn = build_create_fn(entity_type, session_factory)
    return ingest(records, create_fn, max_workers=max_workers)


def build_import_response(result: ImportResult, entity_type: EntityType) -> Dict[str, Any]:
    """Wire shape of POST /api/import/{entity_type}."""
    return {
        "message": format_import_message(result, entity_type),
        entity_type.response_key: [
            entity.model_dump(by_alias=True, mode="json") for entity in result.succeeded
        ],
        "failedCount": result.failed_count,
        "failures": [f.model_dump() for f in result.failures],
    }
