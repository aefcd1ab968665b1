"""Payload schemas for every broker topic the gateway reads or writes."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TelemetryMessage(BaseModel):
    """``telemetry/weight``: device to gateway."""

    model_config = ConfigDict(extra="ignore")

    device_id: str | None = None
    weight: float = Field(allow_inf_nan=False)
    raw_payload: Any = None

    @field_validator("device_id", mode="before")
    @classmethod
    def _stringify_device_id(cls, value: Any) -> Any:
        # Firmware may send numeric ids; 0 and "" fall back to the default device
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return str(value) if value else None
        return value or None

    @field_validator("weight", mode="before")
    @classmethod
    def _reject_bool_weight(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("weight must be numeric, not a boolean")
        return value


class DeviceStatusMessage(BaseModel):
    """``device/status``: passed through as-is, only the id is interpreted."""

    model_config = ConfigDict(extra="allow")

    device_id: str | None = None


class ControlCommand(BaseModel):
    """``device/control``: gateway to device, emitted after every telemetry message."""

    device_id: str
    motor_enabled: bool
    alarm_enabled: bool
    max_weight: float
    current_weight: float
    is_overload: bool
    timestamp: datetime


class SettingsNotification(BaseModel):
    """``device/settings``: ``device_id`` is ``"all"`` for the global threshold."""

    device_id: str
    max_weight: float
    timestamp: datetime
