from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from loadguard.deps import get_dispatcher, get_ledger
from loadguard.schemas.api import (
    ControlLogOut,
    ControlLogStatusIn,
    ControlSendOut,
    Envelope,
    PagedEnvelope,
    Pagination,
)
from loadguard.services.dispatcher import ControlDispatcher
from loadguard.services.history import DEFAULT_PAGE_SIZE, list_control_logs
from loadguard.services.ledger import Ledger

router = APIRouter(prefix="/api", tags=["control"])


@router.post("/control", response_model=Envelope[ControlSendOut])
async def send_control(
    body: dict[str, Any] = Body(...),
    dispatcher: ControlDispatcher = Depends(get_dispatcher),
):
    command_data = dict(body)
    device_id = command_data.pop("device_id", None)
    command_type, result = await dispatcher.send_control_command(device_id, command_data, "mobile_app")
    return Envelope(
        data=ControlSendOut(
            log_id=result.log_id,
            published=result.published,
            command_type=command_type.value,
            command=result.payload,
        )
    )


@router.get("/control-log", response_model=PagedEnvelope[ControlLogOut])
async def get_control_log(
    device_id: str | None = None,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    ledger: Ledger = Depends(get_ledger),
):
    rows = await list_control_logs(ledger, device_id, limit, offset)
    return PagedEnvelope(
        data=[ControlLogOut.model_validate(row) for row in rows],
        pagination=Pagination(limit=limit, offset=offset, count=len(rows)),
    )


@router.patch("/control-log/{log_id}", response_model=Envelope[ControlLogOut])
async def acknowledge_command(
    log_id: int,
    payload: ControlLogStatusIn,
    dispatcher: ControlDispatcher = Depends(get_dispatcher),
):
    entry = await dispatcher.update_status(log_id, payload.status, payload.executed_at)
    return Envelope(data=ControlLogOut.model_validate(entry))
