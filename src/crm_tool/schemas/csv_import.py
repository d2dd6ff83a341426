"""CSV import schemas for field mapping, preview and commit results"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel


class FieldSpec(BaseModel):
    key: str
    label: str
    required: bool = False

    class Config:
        frozen = True


class ImportFailure(BaseModel):
    index: int
    reason: str


class ImportResult(BaseModel):
    attempted: int
    succeeded: List[Any] = []
    failed_count: int = 0
    failures: List[ImportFailure] = []

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)


class Notification(BaseModel):
    kind: str
    message: str


class CreateSessionRequest(BaseModel):
    entity_type: str


class MappingUpdateRequest(BaseModel):
    mapping: Dict[str, Optional[str]]


class ImportSessionState(BaseModel):
    session_id: str
    entity_type: str
    step: str
    filename: Optional[str] = None
    headers: List[str]
    total_rows: int
    fields: List[FieldSpec]
    mapping: Dict[str, Optional[str]]
    missing_required: List[str]
    preview_rows: List[Dict[str, str]]
    is_processing: bool
    result: Optional[ImportResult] = None
    message: Optional[str] = None
    notifications: List[Notification]
    invalidated_resources: List[str]
