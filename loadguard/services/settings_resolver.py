from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

from loadguard.core.errors import NotFoundError, ValidationError
from loadguard.models.entities import Device, Setting
from loadguard.models.enums import CommandType
from loadguard.schemas.messages import SettingsNotification
from loadguard.services.dispatcher import ControlDispatcher
from loadguard.services.ledger import Ledger

log = logging.getLogger("settings")

GLOBAL_SCOPE = "all"

_LATEST_FIRST = (Setting.updated_at.desc(), Setting.id.desc())


def _coerce_max_weight(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise ValidationError("max_weight must be a positive number")
    try:
        max_weight = float(value)
    except (TypeError, ValueError):
        raise ValidationError("max_weight must be a positive number") from None
    if not math.isfinite(max_weight) or max_weight <= 0:
        raise ValidationError("max_weight must be a positive number")
    return max_weight


class SettingsResolver:
    """Resolves the effective weight threshold: device row, then global row, then default."""

    def __init__(self, ledger: Ledger, dispatcher: ControlDispatcher, default_max_weight: float = 500.0):
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.default_max_weight = default_max_weight

    async def resolve(self, device_id: str | None = None) -> float:
        if device_id:
            setting = await self.ledger.find_latest(Setting, {"device_id": device_id}, _LATEST_FIRST)
            if setting is not None:
                return setting.max_weight
        setting = await self.ledger.find_latest(Setting, {"device_id": None}, _LATEST_FIRST)
        if setting is not None:
            return setting.max_weight
        return self.default_max_weight

    async def update(
        self,
        max_weight: Any,
        device_id: str | None = None,
        updated_by: str = "mobile_app",
    ) -> Setting:
        """Append a new setting row for the scope and notify the affected devices.

        History is kept: every update inserts, and ``resolve`` reads the newest
        row for the scope.
        """
        value = _coerce_max_weight(max_weight)
        if device_id and await self.ledger.get(Device, device_id) is None:
            raise NotFoundError(f"Device {device_id} not found. Please register the device first.")

        now = datetime.now(timezone.utc)
        setting = await self.ledger.insert(
            Setting(device_id=device_id, max_weight=value, updated_by=updated_by, updated_at=now)
        )
        log.info("Max weight for %s set to %.2f by %s", device_id or "global", value, updated_by)

        scope = device_id or GLOBAL_SCOPE
        await self.dispatcher.dispatch(
            scope,
            CommandType.SETTINGS_UPDATE,
            SettingsNotification(device_id=scope, max_weight=value, timestamp=now),
            sent_by=updated_by,
            topic=self.dispatcher.settings.topic_settings,
        )
        return setting
