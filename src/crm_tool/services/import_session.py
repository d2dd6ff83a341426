"""Import session state machine: upload -> map -> preview -> complete"""
import enum
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from src.crm_tool.config import get_settings
from src.crm_tool.schemas.csv_import import FieldSpec, ImportResult, ImportSessionState
from src.crm_tool.services.csv_parser import load_csv
from src.crm_tool.services.entities import FIELD_SPECS, EntityType
from src.crm_tool.services.field_mapper import missing_required_fields, suggest_mapping
from src.crm_tool.services.import_committer import ImportCommitter
from src.crm_tool.services.import_errors import (
    CSVParseError,
    CommitTransportError,
    ImportInProgressError,
    ImportStateError,
    MappingValidationError,
)
from src.crm_tool.services.import_service import format_import_message
from src.crm_tool.services.notifications import (
    CacheInvalidator,
    CollectingCacheInvalidator,
    CollectingNotifier,
    NotificationKind,
    Notifier,
)
from src.crm_tool.services.row_transformer import transform_rows

logger = logging.getLogger(__name__)


class ImportStep(str, enum.Enum):
    UPLOAD = "upload"
    MAP = "map"
    PREVIEW = "preview"
    COMPLETE = "complete"


class ImportSessionController:
    """Holds one import's state and drives it through its steps.

    Every transition not listed for the current step raises ImportStateError.
    Only one commit may run at a time; reset is refused while it runs.
    """

    def __init__(
        self,
        entity_type: EntityType,
        committer: ImportCommitter,
        notifier: Notifier,
        cache_invalidator: CacheInvalidator,
        fields: Optional[Sequence[FieldSpec]] = None,
        preview_size: int = 5,
        require_mapped_fields: bool = False
    ):
        self.entity_type = entity_type
        self.fields: List[FieldSpec] = list(fields if fields is not None else FIELD_SPECS[entity_type])
        self.committer = committer
        self.notifier = notifier
        self.cache_invalidator = cache_invalidator
        self.preview_size = preview_size
        self.require_mapped_fields = require_mapped_fields
        self._commit_lock = threading.Lock()
        self._clear()

    def _clear(self) -> None:
        self.step = ImportStep.UPLOAD
        self.filename: Optional[str] = None
        self.headers: List[str] = []
        self.rows: List[Dict[str, str]] = []
        self.mapping: Dict[str, Optional[str]] = {}
        self.preview_rows: List[Dict[str, str]] = []
        self.result: Optional[ImportResult] = None

    def _require_step(self, action: str, *steps: ImportStep) -> None:
        if self.step not in steps:
            raise ImportStateError(f"Cannot {action} during the '{self.step.value}' step")

    @property
    def is_processing(self) -> bool:
        return self._commit_lock.locked()

    @property
    def missing_required(self) -> List[str]:
        return missing_required_fields(self.mapping, self.fields)

    def load_file(self, filename: Optional[str], content: bytes) -> None:
        self._require_step("load a file", ImportStep.UPLOAD)
        try:
            parsed = load_csv(content)
        except CSVParseError as e:
            self._clear()
            self.notifier.notify(NotificationKind.ERROR, f"Error parsing CSV file: {e}")
            raise

        self.filename = filename
        self.headers = parsed.headers
        self.rows = parsed.rows
        self.mapping = suggest_mapping(self.headers, self.fields)
        self.step = ImportStep.MAP
        logger.info(
            f"Loaded {filename or 'CSV'}: {len(self.rows)} rows, "
            f"{len(self.headers)} columns for {self.entity_type.value}"
        )

    def update_mapping(self, field_key: str, header: Optional[str]) -> None:
        self.update_mappings({field_key: header})

    def update_mappings(self, changes: Dict[str, Optional[str]]) -> None:
        """Apply several field assignments; nothing changes if any of them is invalid."""
        self._require_step("change the mapping", ImportStep.MAP)
        field_keys = {f.key for f in self.fields}
        for field_key, header in changes.items():
            if field_key not in field_keys:
                raise ImportStateError(f"Unknown field '{field_key}'")
            if header and header not in self.headers:
                raise ImportStateError(f"Unknown column '{header}'")
        for field_key, header in changes.items():
            self.mapping[field_key] = header or None

    def continue_to_preview(self) -> List[Dict[str, str]]:
        self._require_step("preview", ImportStep.MAP)
        if not self.rows:
            raise ImportStateError("There are no records to preview")
        if self.require_mapped_fields:
            missing = self.missing_required
            if missing:
                raise MappingValidationError(missing)

        self.preview_rows = transform_rows(self.rows[:self.preview_size], self.mapping)
        self.step = ImportStep.PREVIEW
        return self.preview_rows

    def back_to_map(self) -> None:
        self._require_step("go back to mapping", ImportStep.PREVIEW)
        self.step = ImportStep.MAP

    def commit(self) -> ImportResult:
        if not self._commit_lock.acquire(blocking=False):
            raise ImportInProgressError("An import is already in progress")
        try:
            self._require_step("import", ImportStep.PREVIEW)
            if not self.rows:
                raise ImportStateError("There are no records to import")

            records = transform_rows(self.rows, self.mapping)
            try:
                result = self.committer.commit(self.entity_type, records)
            except CommitTransportError as e:
                self.notifier.notify(NotificationKind.ERROR, f"Import failed: {e}")
                raise

            self.result = result
            kind = NotificationKind.SUCCESS if result.failed_count == 0 else NotificationKind.WARNING
            self.notifier.notify(kind, format_import_message(result, self.entity_type))
            self.cache_invalidator.invalidate(self.entity_type.resource_key)
            self.step = ImportStep.COMPLETE
            return result
        finally:
            self._commit_lock.release()

    def reset(self) -> None:
        if self.is_processing:
            raise ImportInProgressError("Cannot reset while an import is in progress")
        self._clear()


@dataclass
class ImportSession:
    session_id: str
    controller: ImportSessionController
    notifier: CollectingNotifier
    cache_invalidator: CollectingCacheInvalidator
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_used_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_state(self) -> ImportSessionState:
        c = self.controller
        return ImportSessionState(
            session_id=self.session_id,
            entity_type=c.entity_type.value,
            step=c.step.value,
            filename=c.filename,
            headers=c.headers,
            total_rows=len(c.rows),
            fields=c.fields,
            mapping=c.mapping,
            missing_required=c.missing_required,
            preview_rows=c.preview_rows,
            is_processing=c.is_processing,
            result=c.result,
            message=format_import_message(c.result, c.entity_type) if c.result else None,
            notifications=list(self.notifier.notifications),
            invalidated_resources=list(self.cache_invalidator.invalidated),
        )


IMPORT_SESSIONS: Dict[str, ImportSession] = {}
_registry_lock = threading.Lock()


def _session_ttl() -> timedelta:
    return timedelta(minutes=get_settings().IMPORT_SESSION_TTL_MINUTES)


def _is_expired(session: ImportSession, now: datetime, ttl: timedelta) -> bool:
    return now - session.last_used_at > ttl and not session.controller.is_processing


def _discard(sessions: List[ImportSession]) -> None:
    for session in sessions:
        session.controller.committer.close()


def create_session(entity_type: EntityType, committer: ImportCommitter) -> ImportSession:
    settings = get_settings()
    purge_expired_sessions()

    notifier = CollectingNotifier()
    cache_invalidator = CollectingCacheInvalidator()
    controller = ImportSessionController(
        entity_type,
        committer,
        notifier,
        cache_invalidator,
        preview_size=settings.IMPORT_PREVIEW_ROWS,
        require_mapped_fields=settings.IMPORT_REQUIRE_MAPPED_FIELDS,
    )
    session = ImportSession(
        session_id=str(uuid.uuid4()),
        controller=controller,
        notifier=notifier,
        cache_invalidator=cache_invalidator,
    )
    with _registry_lock:
        IMPORT_SESSIONS[session.session_id] = session
    logger.info(f"Created import session {session.session_id} for {entity_type.value}")
    return session


def get_session(session_id: str) -> ImportSession:
    """Raises KeyError for unknown or expired sessions."""
    now = datetime.now(timezone.utc)
    with _registry_lock:
        session = IMPORT_SESSIONS[session_id]
        expired = _is_expired(session, now, _session_ttl())
        if expired:
            del IMPORT_SESSIONS[session_id]
        else:
            session.last_used_at = now

    if expired:
        logger.info(f"Import session {session_id} expired")
        _discard([session])
        raise KeyError(session_id)
    return session


def delete_session(session_id: str) -> None:
    with _registry_lock:
        session = IMPORT_SESSIONS.pop(session_id, None)
    if session:
        _discard([session])


def clear_sessions() -> None:
    with _registry_lock:
        sessions = list(IMPORT_SESSIONS.values())
        IMPORT_SESSIONS.clear()
    _discard(sessions)


def purge_expired_sessions(now: Optional[datetime] = None) -> int:
    ttl = _session_ttl()
    now = now or datetime.now(timezone.utc)
    with _registry_lock:
        expired = [s for s in IMPORT_SESSIONS.values() if _is_expired(s, now, ttl)]
        for session in expired:
            del IMPORT_SESSIONS[session.session_id]
    _discard(expired)
    if expired:
        logger.info(f"Purged {len(expired)} expired import sessions")
    return len(expired)
