from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Enum, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from loadguard.db.base import Base
from loadguard.models.enums import CommandStatus, EventType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Device(Base):
    __tablename__ = "devices"

    device_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str | None]
    location: Mapped[str | None]
    last_seen: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class Setting(Base):
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # NULL scopes the row to every device (global setting)
    device_id: Mapped[str | None] = mapped_column(String(128), index=True)
    max_weight: Mapped[float] = mapped_column(Float, nullable=False)
    updated_by: Mapped[str] = mapped_column(String(255), default="system")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class DeviceStatus(Base):
    __tablename__ = "device_status"

    device_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    current_weight: Mapped[float] = mapped_column(Float, default=0.0)
    is_overload: Mapped[bool] = mapped_column(Boolean, default=False)
    motor_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    alarm_active: Mapped[bool] = mapped_column(Boolean, default=False)
    last_update: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class TelemetryRecord(Base):
    __tablename__ = "weight_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(String(128), index=True)
    weight: Mapped[float] = mapped_column(Float, nullable=False)
    is_overload: Mapped[bool] = mapped_column(Boolean, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(String(128), index=True)
    event_type: Mapped[EventType] = mapped_column(Enum(EventType), nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False)
    max_weight: Mapped[float] = mapped_column(Float, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class ControlLogEntry(Base):
    __tablename__ = "control_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(String(128), index=True)
    command_type: Mapped[str] = mapped_column(String(64), nullable=False)
    command_data: Mapped[dict | None] = mapped_column(JSON)
    sent_by: Mapped[str] = mapped_column(String(255), default="system")
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    status: Mapped[CommandStatus] = mapped_column(Enum(CommandStatus), default=CommandStatus.SENT)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
