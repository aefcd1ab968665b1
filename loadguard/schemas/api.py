from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from loadguard.models.enums import CommandStatus, EventType

T = TypeVar("T")


class Pagination(BaseModel):
    limit: int
    offset: int
    count: int


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class PagedEnvelope(BaseModel, Generic[T]):
    success: bool = True
    data: list[T]
    pagination: Pagination


class ErrorOut(BaseModel):
    success: bool = False
    error: str


class DeviceRegisterIn(BaseModel):
    device_id: str | None = None
    name: str | None = None
    location: str | None = None


class DeviceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    device_id: str
    name: str | None
    location: str | None
    last_seen: datetime | None


class TelemetryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    device_id: str
    weight: float
    is_overload: bool
    timestamp: datetime


class DeviceStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    device_id: str
    current_weight: float
    is_overload: bool
    motor_enabled: bool
    alarm_active: bool
    last_update: datetime | None
    last_telemetry: TelemetryOut | None = None


class ThresholdOut(BaseModel):
    max_weight: float
    device_id: str | None = None
    scope: str | None = None


class SettingsUpdateIn(BaseModel):
    # Validated by the resolver so bad input yields the service error envelope
    max_weight: Any = None
    device_id: str | None = None


class SettingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    device_id: str | None
    max_weight: float
    updated_by: str
    updated_at: datetime


class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    device_id: str
    event_type: EventType
    weight: float
    max_weight: float
    timestamp: datetime


class ControlLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    device_id: str
    command_type: str
    command_data: dict | None
    sent_by: str
    sent_at: datetime
    status: CommandStatus
    executed_at: datetime | None


class ControlLogStatusIn(BaseModel):
    status: str = Field(default=CommandStatus.ACK.value)
    executed_at: datetime | None = None


class ControlSendOut(BaseModel):
    log_id: int | None
    published: bool
    command_type: str
    command: dict[str, Any]
