"""Best-effort batch ingestion of transformed records"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Tuple

from src.crm_tool.schemas.csv_import import ImportFailure, ImportResult

logger = logging.getLogger(__name__)

CreateFn = Callable[[Dict[str, Any]], Any]
Outcome = Tuple[bool, Any]


def _attempt(create_fn: CreateFn, index: int, record: Dict[str, Any]) -> Outcome:
    try:
        return True, create_fn(record)
    except Exception as e:
        logger.warning(f"Failed to import record {index}: {e}")
        return False, e


def ingest(
    records: List[Dict[str, Any]],
    create_fn: CreateFn,
    max_workers: int = 1
) -> ImportResult:
    """Persist each record independently.

    A failing record is counted and skipped; earlier successes stay in place
    and the loop never stops early. With max_workers > 1 records are created
    on a bounded thread pool; the result is still assembled once, after every
    record has been attempted, with successes in input order.
    """
    if max_workers > 1 and len(records) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(
                lambda item: _attempt(create_fn, *item),
                enumerate(records)
            ))
    else:
        outcomes = [_attempt(create_fn, idx, record) for idx, record in enumerate(records)]

    succeeded = []
    failures = []
    for idx, (ok, value) in enumerate(outcomes):
        if ok:
            succeeded.append(value)
        else:
            failures.append(ImportFailure(index=idx, reason=str(value) or type(value).__name__))

    result = ImportResult(
        attempted=len(records),
        succeeded=succeeded,
        failed_count=len(failures),
        failures=failures
    )
    logger.info(
        f"Ingested {result.attempted} records: "
        f"{result.succeeded_count} succeeded, {result.failed_count} failed"
    )
    return result
