from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status

from taleforge.api.deps import get_registry
from taleforge.api.models import (
    CheckpointResponse,
    CommandAccepted,
    CommandRequest,
    EventListResponse,
    EventView,
    SessionCreateRequest,
    SessionListResponse,
    SessionView,
)
from taleforge.errors import SessionNotFound
from taleforge.models import observable_state
from taleforge.orchestrator import SessionOrchestrator
from taleforge.registry import SessionRegistry
from taleforge.streams import websocket_relay

router = APIRouter()


def _require_session(registry: SessionRegistry, session_id: str) -> SessionOrchestrator:
    try:
        return registry.get(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


def _view(orch: SessionOrchestrator) -> SessionView:
    return SessionView.model_validate(observable_state(orch.state))


@router.websocket("/ws/sessions/{session_id}")
async def session_events_ws(websocket: WebSocket, session_id: str) -> None:
    await websocket_relay.attach(session_id, websocket)
    try:
        # Events flow one way; anything the client sends is ignored.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        websocket_relay.detach(session_id, websocket)


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/sessions", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def create_session_route(
    payload: SessionCreateRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionView:
    orch = await registry.get_or_create(payload.session_id)
    return _view(orch)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions_route(registry: SessionRegistry = Depends(get_registry)) -> SessionListResponse:
    return SessionListResponse(session_ids=sorted(registry.list_active()))


@router.get("/sessions/{session_id}", response_model=SessionView)
async def get_session_route(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> SessionView:
    return _view(_require_session(registry, session_id))


@router.post(
    "/sessions/{session_id}/commands",
    response_model=CommandAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_command_route(
    session_id: str,
    payload: CommandRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> CommandAccepted:
    orch = _require_session(registry, session_id)
    try:
        ticket = orch.submit(payload.text)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return CommandAccepted(session_id=session_id, ticket=ticket)


@router.get("/sessions/{session_id}/events", response_model=EventListResponse)
async def list_events_route(
    session_id: str,
    after: int = 0,
    registry: SessionRegistry = Depends(get_registry),
) -> EventListResponse:
    """Polling alternative to the WebSocket: events with seq > `after`."""

    orch = _require_session(registry, session_id)
    return EventListResponse(events=[EventView.model_validate(e.to_dict()) for e in orch.events.after(after)])


@router.post("/sessions/{session_id}/checkpoint", response_model=CheckpointResponse)
async def checkpoint_route(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> CheckpointResponse:
    _require_session(registry, session_id)
    snapshot = registry.checkpoint(session_id)
    return CheckpointResponse(
        session_id=session_id,
        schema_version=snapshot.schema_version,
        saved=registry.persistent,
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def evict_session_route(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> Response:
    try:
        await registry.evict(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
