from fastapi import APIRouter, Depends, Query

from loadguard.deps import get_ledger
from loadguard.schemas.api import EventOut, PagedEnvelope, Pagination
from loadguard.services.history import DEFAULT_PAGE_SIZE, list_events
from loadguard.services.ledger import Ledger

router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("", response_model=PagedEnvelope[EventOut])
async def get_events(
    device_id: str | None = None,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    ledger: Ledger = Depends(get_ledger),
):
    """Overload and recovery transitions, newest first."""
    rows = await list_events(ledger, device_id, limit, offset)
    return PagedEnvelope(
        data=[EventOut.model_validate(row) for row in rows],
        pagination=Pagination(limit=limit, offset=offset, count=len(rows)),
    )
