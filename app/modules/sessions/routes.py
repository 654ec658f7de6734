from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from app.config.settings import Settings
from app.core.dependencies import (
    check_session_access,
    get_current_user_id,
    get_ledger_service,
    get_optional_user,
    get_settings,
    is_super_user,
)
from app.core.errors import NotFound
from app.modules.sessions.events import DeploymentEventBus, get_event_bus
from app.modules.sessions.schemas import SessionRegister
from app.modules.sessions.service import LedgerService
from typing import Dict, List, Optional

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", status_code=201)
async def register_session(
    request: SessionRegister,
    user_data: Optional[Dict] = Depends(get_optional_user),
    ledger: LedgerService = Depends(get_ledger_service),
    settings: Settings = Depends(get_settings)
):
    """Record ownership of a generation session (no-op if it is already registered)"""
    owner_id = user_data["id"] if user_data else None
    record = ledger.ensure_record(request.session_id, owner_id=owner_id, website_name=request.website_name)
    check_session_access(record, user_data, settings)
    return record.deployment_info()


@router.get("", response_model=List[Dict])
async def list_sessions(
    user_data: Dict = Depends(get_current_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
    settings: Settings = Depends(get_settings)
):
    """Caller's sessions; every session in shared mode or for super users"""
    owner_id = None if settings.is_shared_mode or is_super_user(user_data) else user_data["id"]
    return [record.deployment_info() for record in ledger.list_records(owner_id)]


@router.get("/{session_id}/events")
async def stream_session_events(
    session_id: str,
    user_data: Optional[Dict] = Depends(get_optional_user),
    ledger: LedgerService = Depends(get_ledger_service),
    events: DeploymentEventBus = Depends(get_event_bus),
    settings: Settings = Depends(get_settings)
):
    """Server-sent events for changes to the session's deployment record"""
    record = ledger.get_record(session_id)
    if record is None:
        raise NotFound()
    check_session_access(record, user_data, settings)
    return StreamingResponse(
        events.stream(session_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
