"""API router: supervisor status, reboot/shutdown control and watchdog configuration."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Request, Security, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field, ValidationError

from firecnc.supervisor.system import SupervisorRuntime
from firecnc.supervisor.types import LogLevel, RestartReason
from services.api.security import require_scope

router = APIRouter()


class RebootRequest(BaseModel):
    reason: RestartReason = RestartReason.USER_REBOOT


class SdErrorRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class ConnectivityRequest(BaseModel):
    status: Literal["connected", "disconnected"]


class WatchdogConfigUpdate(BaseModel):
    enabled: Optional[bool] = None
    timeout_seconds: Optional[float] = None
    icmp_target: Optional[str] = None
    icmp_delay_seconds: Optional[float] = None
    icmp_interval_seconds: Optional[float] = None
    icmp_fail_threshold: Optional[int] = None
    sd_reboot_enabled: Optional[bool] = None
    sd_reboot_timeout_seconds: Optional[float] = None
    shutdown_pin_index: Optional[int] = None


class AcceptedResponse(BaseModel):
    status: str
    action: str
    detail: Dict[str, Any] = Field(default_factory=dict)


def get_runtime(request: Request) -> SupervisorRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Supervisor is not running")
    return runtime


@router.get("/info")
def system_info(request: Request, _key: str = Security(require_scope("read"))) -> Dict[str, Any]:
    return get_runtime(request).supervisor.snapshot()


@router.get("/health-stats")
def health_stats(request: Request, _key: str = Security(require_scope("read"))) -> Dict[str, int]:
    return get_runtime(request).supervisor.health_stats.model_dump(by_alias=True)


@router.get("/logs")
def system_logs(
    request: Request,
    level: Optional[LogLevel] = Query(default=None),
    _key: str = Security(require_scope("read")),
) -> List[Dict[str, Any]]:
    entries = list(get_runtime(request).supervisor.sink.log_entries)
    if level is not None:
        entries = [entry for entry in entries if entry.level == level]
    return [entry.model_dump(mode="json") for entry in entries]


@router.get("/traps")
def trap_log(request: Request, _key: str = Security(require_scope("read"))) -> List[Dict[str, Any]]:
    return [entry.model_dump(mode="json") for entry in get_runtime(request).supervisor.sink.trap_entries]


@router.post("/reboot", status_code=status.HTTP_202_ACCEPTED, response_model=AcceptedResponse)
def reboot(payload: RebootRequest, request: Request, _key: str = Security(require_scope("write"))) -> AcceptedResponse:
    runtime = get_runtime(request)
    runtime.submit(runtime.supervisor.reboot_device, payload.reason)
    return AcceptedResponse(status="accepted", action="reboot", detail={"reason": payload.reason.value})


@router.post("/shutdown", status_code=status.HTTP_202_ACCEPTED, response_model=AcceptedResponse)
def shutdown(request: Request, _key: str = Security(require_scope("write"))) -> AcceptedResponse:
    runtime = get_runtime(request)
    if runtime.supervisor.is_shutting_down or not runtime.submit_once("shutdown", runtime.supervisor.shutdown_device):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Shutdown already pending")
    return AcceptedResponse(status="accepted", action="shutdown")


@router.post("/sd-error", status_code=status.HTTP_202_ACCEPTED, response_model=AcceptedResponse)
def sd_error(payload: SdErrorRequest, request: Request, _key: str = Security(require_scope("write"))) -> AcceptedResponse:
    runtime = get_runtime(request)
    if runtime.supervisor.sd_card_error_active or not runtime.submit_once(
        "sd-error", runtime.supervisor.trigger_sd_error_visual, payload.reason
    ):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="SD card error already active")
    return AcceptedResponse(status="accepted", action="sd-error", detail={"reason": payload.reason})


@router.post("/heartbeat", status_code=status.HTTP_202_ACCEPTED, response_model=AcceptedResponse)
def heartbeat(request: Request, _key: str = Security(require_scope("write"))) -> AcceptedResponse:
    runtime = get_runtime(request)
    runtime.submit(runtime.supervisor.record_heartbeat)
    return AcceptedResponse(status="accepted", action="heartbeat")


@router.put("/config/watchdog", status_code=status.HTTP_202_ACCEPTED, response_model=AcceptedResponse)
def update_watchdog_config(
    payload: WatchdogConfigUpdate,
    request: Request,
    _key: str = Security(require_scope("write")),
) -> AcceptedResponse:
    runtime = get_runtime(request)
    changes = payload.model_dump(exclude_unset=True)
    current = runtime.supervisor.config.watchdog()
    try:
        type(current).model_validate({**current.model_dump(), **changes})
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=jsonable_encoder(exc.errors())) from exc
    # Merge on the scheduler so overlapping updates each keep their own fields.
    runtime.submit(lambda: runtime.supervisor.config.update_watchdog(**changes))
    return AcceptedResponse(status="accepted", action="config", detail=changes)


@router.put("/connectivity", status_code=status.HTTP_202_ACCEPTED, response_model=AcceptedResponse)
def set_connectivity(
    payload: ConnectivityRequest,
    request: Request,
    _key: str = Security(require_scope("write")),
) -> AcceptedResponse:
    runtime = get_runtime(request)
    link = runtime.supervisor.link
    runtime.submit(link.connect if payload.status == "connected" else link.disconnect)
    return AcceptedResponse(status="accepted", action="connectivity", detail={"status": payload.status})
