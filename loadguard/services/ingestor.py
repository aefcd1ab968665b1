from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from loadguard.core.errors import StoreError
from loadguard.models.entities import Device, DeviceStatus, Event, TelemetryRecord
from loadguard.models.enums import CommandType, EventType
from loadguard.schemas.messages import ControlCommand
from loadguard.services.dispatcher import ControlDispatcher
from loadguard.services.ledger import Ledger
from loadguard.services.overload import Decision, evaluate, parse_weight
from loadguard.services.settings_resolver import SettingsResolver

log = logging.getLogger("ingestor")

DEFAULT_DEVICE_ID = "default_device"


@dataclass
class ProcessingResult:
    device_id: str
    current_weight: float
    max_weight: float
    is_overload: bool
    motor_enabled: bool
    alarm_enabled: bool
    transition: EventType | None
    published: bool


class TelemetryIngestor:
    """Turns one weight reading into ledger rows and a control command.

    Readings for the same device are processed one at a time so the
    read-previous-status / write-new-status pair never interleaves.
    """

    def __init__(
        self,
        ledger: Ledger,
        resolver: SettingsResolver,
        dispatcher: ControlDispatcher,
        default_device_id: str = DEFAULT_DEVICE_ID,
    ) -> None:
        self.ledger = ledger
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.default_device_id = default_device_id
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    async def ingest(self, device_id: str | None, raw_weight: Any) -> ProcessingResult:
        weight = parse_weight(raw_weight)
        device_id = device_id or self.default_device_id
        lock = self._locks.setdefault(device_id, asyncio.Lock())
        self._lock_users[device_id] += 1
        try:
            async with lock:
                return await self._process(device_id, weight)
        finally:
            # Drop the lock once no reading for the device is pending
            self._lock_users[device_id] -= 1
            if not self._lock_users[device_id]:
                del self._lock_users[device_id]
                del self._locks[device_id]

    async def _process(self, device_id: str, weight: float) -> ProcessingResult:
        # Threshold and previous state are load-bearing: failures abort this message
        max_weight = await self.resolver.resolve(device_id)
        previous = await self.ledger.get(DeviceStatus, device_id)
        previous_is_overload = bool(previous.is_overload) if previous is not None else False

        decision = evaluate(weight, max_weight, previous_is_overload)
        now = datetime.now(timezone.utc)

        await self._ensure_device(device_id, now)
        if decision.transitioned:
            await self._record_event(device_id, decision, now)
        await self._record(
            TelemetryRecord(device_id=device_id, weight=weight, is_overload=decision.is_overload, timestamp=now),
        )
        await self._record_status(device_id, decision, now)

        command = ControlCommand(
            device_id=device_id,
            motor_enabled=decision.motor_enabled,
            alarm_enabled=decision.alarm_enabled,
            max_weight=max_weight,
            current_weight=weight,
            is_overload=decision.is_overload,
            timestamp=now,
        )
        dispatched = await self.dispatcher.dispatch(
            device_id, CommandType.MOTOR_CONTROL, command, sent_by="system"
        )
        log.info(
            "Processed %s: %.2fkg / %.2fkg overload=%s",
            device_id,
            weight,
            max_weight,
            decision.is_overload,
        )
        return ProcessingResult(
            device_id=device_id,
            current_weight=weight,
            max_weight=max_weight,
            is_overload=decision.is_overload,
            motor_enabled=decision.motor_enabled,
            alarm_enabled=decision.alarm_enabled,
            transition=decision.transition,
            published=dispatched.published,
        )

    async def _ensure_device(self, device_id: str, now: datetime) -> None:
        try:
            if await self.ledger.get(Device, device_id) is None:
                await self.ledger.insert(Device(device_id=device_id, last_seen=now, created_at=now))
                log.info("Registered unseen device %s from telemetry", device_id)
        except StoreError:
            log.exception("Failed to record device %s", device_id)

    async def _record_event(self, device_id: str, decision: Decision, now: datetime) -> None:
        recorded = await self._record(
            Event(
                device_id=device_id,
                event_type=decision.transition,
                weight=decision.current_weight,
                max_weight=decision.max_weight,
                timestamp=now,
            )
        )
        if recorded:
            log.info(
                "Event logged for %s: %s at %.2fkg",
                device_id,
                decision.transition.value,
                decision.current_weight,
            )

    async def _record_status(self, device_id: str, decision: Decision, now: datetime) -> None:
        try:
            await self.ledger.upsert(
                DeviceStatus,
                {
                    "device_id": device_id,
                    "current_weight": decision.current_weight,
                    "is_overload": decision.is_overload,
                    "motor_enabled": decision.motor_enabled,
                    "alarm_active": decision.alarm_enabled,
                    "last_update": now,
                },
                conflict_key="device_id",
            )
        except StoreError:
            log.exception("Failed to update status for %s", device_id)

    async def _record(self, record) -> bool:
        try:
            await self.ledger.insert(record)
        except StoreError:
            log.exception("Failed to write %s row", record.__tablename__)
            return False
        return True
