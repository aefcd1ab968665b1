"""Paged, newest-first reads of the append-only ledger tables."""

from __future__ import annotations

from loadguard.models.entities import ControlLogEntry, Event, TelemetryRecord
from loadguard.services.ledger import Ledger

DEFAULT_PAGE_SIZE = 100


def _scope(device_id: str | None) -> dict[str, str]:
    return {"device_id": device_id} if device_id else {}


async def list_telemetry(
    ledger: Ledger, device_id: str | None = None, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0
) -> list[TelemetryRecord]:
    return await ledger.query(
        TelemetryRecord,
        _scope(device_id),
        order_by=(TelemetryRecord.timestamp.desc(), TelemetryRecord.id.desc()),
        limit=limit,
        offset=offset,
    )


async def list_events(
    ledger: Ledger, device_id: str | None = None, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0
) -> list[Event]:
    return await ledger.query(
        Event,
        _scope(device_id),
        order_by=(Event.timestamp.desc(), Event.id.desc()),
        limit=limit,
        offset=offset,
    )


async def list_control_logs(
    ledger: Ledger, device_id: str | None = None, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0
) -> list[ControlLogEntry]:
    return await ledger.query(
        ControlLogEntry,
        _scope(device_id),
        order_by=(ControlLogEntry.sent_at.desc(), ControlLogEntry.id.desc()),
        limit=limit,
        offset=offset,
    )
