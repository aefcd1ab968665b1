from fastapi import APIRouter, Depends, Query

from loadguard.deps import get_ledger
from loadguard.schemas.api import PagedEnvelope, Pagination, TelemetryOut
from loadguard.services.history import DEFAULT_PAGE_SIZE, list_telemetry
from loadguard.services.ledger import Ledger

router = APIRouter(prefix="/api/telemetry", tags=["telemetry"])


@router.get("", response_model=PagedEnvelope[TelemetryOut])
async def get_telemetry(
    device_id: str | None = None,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    ledger: Ledger = Depends(get_ledger),
):
    rows = await list_telemetry(ledger, device_id, limit, offset)
    return PagedEnvelope(
        data=[TelemetryOut.model_validate(row) for row in rows],
        pagination=Pagination(limit=limit, offset=offset, count=len(rows)),
    )
