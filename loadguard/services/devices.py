from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from loadguard.core.errors import StoreError, ValidationError
from loadguard.models.entities import Device, DeviceStatus, Setting, TelemetryRecord
from loadguard.services.ledger import Ledger
from loadguard.services.settings_resolver import SettingsResolver

log = logging.getLogger("devices")


@dataclass
class StatusSnapshot:
    device_id: str
    current_weight: float
    is_overload: bool
    motor_enabled: bool
    alarm_active: bool
    last_update: datetime | None
    last_telemetry: TelemetryRecord | None = None


class DeviceRegistry:
    def __init__(self, ledger: Ledger, resolver: SettingsResolver):
        self.ledger = ledger
        self.resolver = resolver

    async def register(
        self, device_id: str | None, name: str | None = None, location: str | None = None
    ) -> Device:
        """Create or refresh a device.

        A device without its own threshold gets one seeded from the current
        global value, whether it was first seen here or through telemetry.
        """
        if not device_id:
            raise ValidationError("device_id is required")

        device = await self.ledger.upsert(
            Device,
            {
                "device_id": device_id,
                "name": name,
                "location": location,
                "last_seen": datetime.now(timezone.utc),
            },
            conflict_key="device_id",
        )
        if await self.ledger.find_latest(Setting, {"device_id": device_id}, (Setting.id.desc(),)) is None:
            await self._seed_setting(device_id)
        return device

    async def _seed_setting(self, device_id: str) -> None:
        try:
            max_weight = await self.resolver.resolve(None)
        except StoreError:
            max_weight = self.resolver.default_max_weight
            log.warning("Using default max_weight %.1f for %s", max_weight, device_id)
        try:
            await self.ledger.insert(Setting(device_id=device_id, max_weight=max_weight, updated_by="system"))
        except StoreError:
            log.exception("Failed to create default settings for %s", device_id)
        else:
            log.info("Created default settings for %s with max_weight %.1f", device_id, max_weight)

    async def get_status(self, device_id: str) -> StatusSnapshot:
        status = await self.ledger.get(DeviceStatus, device_id)
        if status is None:
            return StatusSnapshot(
                device_id=device_id,
                current_weight=0.0,
                is_overload=False,
                motor_enabled=False,
                alarm_active=False,
                last_update=None,
            )
        return StatusSnapshot(
            device_id=status.device_id,
            current_weight=status.current_weight,
            is_overload=status.is_overload,
            motor_enabled=status.motor_enabled,
            alarm_active=status.alarm_active,
            last_update=status.last_update,
        )

    async def get_status_with_telemetry(self, device_id: str) -> StatusSnapshot:
        snapshot = await self.get_status(device_id)
        try:
            snapshot.last_telemetry = await self.ledger.find_latest(
                TelemetryRecord,
                {"device_id": device_id},
                (TelemetryRecord.timestamp.desc(), TelemetryRecord.id.desc()),
            )
        except StoreError:
            log.exception("Failed to read last telemetry for %s", device_id)
        return snapshot
