from fastapi import APIRouter, Depends, HTTPException

from dupcheck.api.auth import require_api_key
from dupcheck.api.schemas import (
    ActionResponse,
    ActionsUpdate,
    CreateNewToggle,
    CreateSessionRequest,
    CriteriaUpdate,
    SelectRequest,
    SessionView,
)
from dupcheck.core.registry import SessionRegistry, registry
from dupcheck.core.session import SearchSession

router = APIRouter(prefix="/sessions", tags=["sessions"], dependencies=[Depends(require_api_key)])


def get_registry() -> SessionRegistry:
    return registry


def _live_session(session_id: str, reg: SessionRegistry) -> SearchSession:
    session = reg.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} is not open")
    return session


def _view(session: SearchSession) -> SessionView:
    return SessionView(**session.snapshot().to_dict())


def _action(accepted: bool, session: SearchSession) -> ActionResponse:
    return ActionResponse(accepted=bool(accepted), session=_view(session))


@router.post("", response_model=SessionView, status_code=201)
async def create_session(body: CreateSessionRequest, reg: SessionRegistry = Depends(get_registry)):
    session = reg.create(body.profile, body.availableActions, body.criteria)
    return _view(session)


@router.get("/{session_id}", response_model=SessionView)
async def get_session(session_id: str, reg: SessionRegistry = Depends(get_registry)):
    snap = reg.find_snapshot(session_id)
    if snap is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return SessionView(**snap.to_dict())


@router.put("/{session_id}/criteria", response_model=SessionView)
async def update_criteria(session_id: str, body: CriteriaUpdate, reg: SessionRegistry = Depends(get_registry)):
    session = _live_session(session_id, reg)
    session.update_criteria(body.criteria)
    return _view(session)


@router.post("/{session_id}/refresh", response_model=ActionResponse)
async def refresh(session_id: str, reg: SessionRegistry = Depends(get_registry)):
    session = _live_session(session_id, reg)
    return _action(session.refresh(), session)


@router.put("/{session_id}/actions", response_model=SessionView)
async def update_actions(session_id: str, body: ActionsUpdate, reg: SessionRegistry = Depends(get_registry)):
    session = _live_session(session_id, reg)
    session.set_available_actions(body.availableActions)
    return _view(session)


@router.post("/{session_id}/select", response_model=ActionResponse)
async def select_record(session_id: str, body: SelectRequest, reg: SessionRegistry = Depends(get_registry)):
    session = _live_session(session_id, reg)
    return _action(session.select_record(body.recordId), session)


@router.post("/{session_id}/create-new", response_model=SessionView)
async def toggle_create_new(session_id: str, body: CreateNewToggle, reg: SessionRegistry = Depends(get_registry)):
    session = _live_session(session_id, reg)
    session.set_create_new(body.checked)
    return _view(session)


@router.post("/{session_id}/advance", response_model=ActionResponse)
async def advance(session_id: str, reg: SessionRegistry = Depends(get_registry)):
    session = _live_session(session_id, reg)
    return _action(session.advance(), session)


@router.delete("/{session_id}", response_model=SessionView)
async def close_session(session_id: str, reg: SessionRegistry = Depends(get_registry)):
    snap = reg.close(session_id)
    if snap is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} is not open")
    return SessionView(**snap.to_dict())
