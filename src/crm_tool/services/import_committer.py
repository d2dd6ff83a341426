"""Commit transports used by the import session"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.orm import sessionmaker

from src.crm_tool.schemas.csv_import import ImportFailure, ImportResult
from src.crm_tool.services.entities import EntityType
from src.crm_tool.services.import_errors import CommitTransportError
from src.crm_tool.services.import_service import import_records

logger = logging.getLogger(__name__)


class ImportCommitter(ABC):
    @abstractmethod
    def commit(self, entity_type: EntityType, records: List[Dict[str, Any]]) -> ImportResult:
        pass

    def close(self) -> None:
        pass


class LocalImportCommitter(ImportCommitter):
    """Runs the import in-process against the given session factory."""

    def __init__(self, session_factory: sessionmaker, max_workers: Optional[int] = None):
        self.session_factory = session_factory
        self.max_workers = max_workers

    def commit(self, entity_type: EntityType, records: List[Dict[str, Any]]) -> ImportResult:
        return import_records(
            self.session_factory,
            entity_type,
            records,
            max_workers=self.max_workers
        )


class HttpImportCommitter(ImportCommitter):
    """Posts the batch to POST /api/import/{entity_type} of a running API."""

    def __init__(
        self,
        base_url: str = "",
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None
    ):
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def commit(self, entity_type: EntityType, records: List[Dict[str, Any]]) -> ImportResult:
        try:
            response = self._client.post(
                f"/api/import/{entity_type.value}",
                json={entity_type.value: records}
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:200]
            raise CommitTransportError(
                f"Import request failed with status {e.response.status_code}: {detail}"
            ) from e
        except httpx.HTTPError as e:
            raise CommitTransportError(f"Import request failed: {e}") from e
        except ValueError as e:
            raise CommitTransportError(f"Import response was not valid JSON: {e}") from e

        imported = payload.get(entity_type.response_key) or []
        failures = [ImportFailure(**f) for f in payload.get("failures") or []]
        return ImportResult(
            attempted=len(records),
            succeeded=imported,
            failed_count=len(records) - len(imported),
            failures=failures
        )

    def close(self) -> None:
        self._client.close()
