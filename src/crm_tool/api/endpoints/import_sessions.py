"""Step-by-step CSV import: upload, map, preview, commit"""
from fastapi import APIRouter, File, HTTPException, UploadFile

from src.crm_tool.api.deps import Committer
from src.crm_tool.config import settings
from src.crm_tool.schemas.csv_import import (
    CreateSessionRequest,
    ImportSessionState,
    MappingUpdateRequest,
)
from src.crm_tool.services.entities import resolve_entity_type
from src.crm_tool.services.import_errors import (
    CSVParseError,
    CommitTransportError,
    ImportStateError,
    MappingValidationError,
)
from src.crm_tool.services.import_session import (
    ImportSession,
    create_session,
    delete_session,
    get_session,
)

router = APIRouter(prefix="/api/import/sessions")


def load_session(session_id: str) -> ImportSession:
    try:
        return get_session(session_id)
    except KeyError:
        raise HTTPException(
            status_code=404,
            detail="Invalid or expired import session. Please start again."
        )


@router.post("", response_model=ImportSessionState, status_code=201)
def start_import_session(request: CreateSessionRequest, committer: Committer):
    try:
        entity_type = resolve_entity_type(request.entity_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return create_session(entity_type, committer).to_state()


@router.get("/{session_id}", response_model=ImportSessionState)
def get_import_session(session_id: str):
    return load_session(session_id).to_state()


@router.post("/{session_id}/upload", response_model=ImportSessionState)
async def upload_csv(session_id: str, file: UploadFile = File(...)):
    session = load_session(session_id)

    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="File must be a CSV")

    content = await file.read()
    if len(content) > settings.csv_max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File is too large (limit: {settings.CSV_MAX_UPLOAD_MB}MB)"
        )

    try:
        session.controller.load_file(file.filename, content)
    except CSVParseError as e:
        raise HTTPException(status_code=400, detail=f"Error parsing CSV file: {e}")
    except ImportStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session.to_state()


@router.put("/{session_id}/mapping", response_model=ImportSessionState)
def update_mapping(session_id: str, request: MappingUpdateRequest):
    session = load_session(session_id)
    try:
        session.controller.update_mappings(request.mapping)
    except ImportStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session.to_state()


@router.post("/{session_id}/preview", response_model=ImportSessionState)
def preview_import(session_id: str):
    session = load_session(session_id)
    try:
        session.controller.continue_to_preview()
    except MappingValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ImportStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session.to_state()


@router.post("/{session_id}/back", response_model=ImportSessionState)
def back_to_mapping(session_id: str):
    session = load_session(session_id)
    try:
        session.controller.back_to_map()
    except ImportStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session.to_state()


@router.post("/{session_id}/commit", response_model=ImportSessionState)
def commit_import(session_id: str):
    """
    Import every row of the file with the current mapping.
    A transport failure leaves the session in preview so the import can be retried.
    """
    session = load_session(session_id)
    try:
        session.controller.commit()
    except CommitTransportError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ImportStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session.to_state()


@router.post("/{session_id}/reset", response_model=ImportSessionState)
def reset_import(session_id: str):
    session = load_session(session_id)
    try:
        session.controller.reset()
    except ImportStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    session.notifier.clear()
    session.cache_invalidator.clear()
    return session.to_state()


@router.delete("/{session_id}", status_code=204)
def discard_import_session(session_id: str):
    load_session(session_id)
    delete_session(session_id)
