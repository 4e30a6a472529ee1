"""
Control surface routes.

Handlers are plain (sync) functions so FastAPI runs them in its threadpool;
RelayController blocks on its lock and the device write, never the event loop.
"""
from typing import List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from pialert_relay.controller import RelayController
from pialert_relay.history import PollHistory
from pialert_relay.models import ControllerSnapshot, PollRecord, RelayState

router = APIRouter()


class ManualOverrideResponse(BaseModel):
    relay_state: RelayState
    manual_override: bool = True


class HealthResponse(BaseModel):
    status: str
    api_url: str
    poll_interval_ms: int
    relay_state: RelayState


def get_controller(request: Request) -> RelayController:
    return request.app.state.controller


def get_history(request: Request) -> PollHistory:
    return request.app.state.history


@router.get("/api/status", response_model=ControllerSnapshot)
def status(controller: RelayController = Depends(get_controller)):
    return controller.snapshot()


@router.get("/api/history", response_model=List[PollRecord])
def history(poll_history: PollHistory = Depends(get_history)):
    return poll_history.snapshot()


@router.post("/api/relay/toggle", response_model=ManualOverrideResponse)
def relay_toggle(controller: RelayController = Depends(get_controller)):
    record = controller.toggle()
    return ManualOverrideResponse(relay_state=record.relay_state)


@router.post("/api/relay/on", response_model=ManualOverrideResponse)
def relay_on(controller: RelayController = Depends(get_controller)):
    record = controller.set_manual(True)
    return ManualOverrideResponse(relay_state=record.relay_state)


@router.post("/api/relay/off", response_model=ManualOverrideResponse)
def relay_off(controller: RelayController = Depends(get_controller)):
    record = controller.set_manual(False)
    return ManualOverrideResponse(relay_state=record.relay_state)


@router.get("/health", response_model=HealthResponse)
def health(controller: RelayController = Depends(get_controller)):
    snapshot = controller.snapshot()
    return HealthResponse(
        status="relay controller running",
        api_url=snapshot.api_url,
        poll_interval_ms=snapshot.poll_interval_ms,
        relay_state=snapshot.relay_state,
    )
