from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping

from pydantic import BaseModel

from loadguard.core.config import Settings
from loadguard.core.errors import NotFoundError, PublishError, StoreError, ValidationError
from loadguard.models.entities import ControlLogEntry
from loadguard.models.enums import CommandStatus, CommandType, OperatorCommand
from loadguard.services.ledger import Ledger

if TYPE_CHECKING:
    from loadguard.services.broker import BrokerConnection

log = logging.getLogger("dispatcher")

ALLOWED_COMMANDS: tuple[str, ...] = tuple(command.value for command in OperatorCommand)


@dataclass
class DispatchResult:
    log_id: int | None
    published: bool
    payload: dict[str, Any]


def classify_command(command_data: Mapping[str, Any]) -> CommandType:
    """Pick the control log category for an operator-supplied command body."""
    if command_data.get("direction") is not None:
        return CommandType.MOVEMENT_CONTROL
    has_motor = command_data.get("motor_enabled") is not None
    has_alarm = command_data.get("alarm_enabled") is not None
    if has_motor and has_alarm:
        return CommandType.MOTOR_CONTROL
    if has_alarm:
        return CommandType.ALARM_CONTROL
    return CommandType.MANUAL_CONTROL


class ControlDispatcher:
    """Records control commands in the ledger and publishes them to devices.

    The ledger entry is written before the publish so every command that may
    have reached a device is auditable. Neither step is retried; delivery is
    left to broker QoS 1.
    """

    def __init__(self, ledger: Ledger, broker: "BrokerConnection", settings: Settings):
        self.ledger = ledger
        self.broker = broker
        self.settings = settings

    async def dispatch(
        self,
        device_id: str,
        command_type: CommandType | str,
        payload: BaseModel | Mapping[str, Any],
        sent_by: str,
        topic: str | None = None,
    ) -> DispatchResult:
        if isinstance(payload, BaseModel):
            data = payload.model_dump(mode="json")
        else:
            data = dict(payload)
        command_type = CommandType(command_type).value
        topic = topic or self.settings.topic_control

        log_id = None
        try:
            entry = await self.ledger.insert(
                ControlLogEntry(
                    device_id=device_id,
                    command_type=command_type,
                    command_data=data,
                    sent_by=sent_by,
                    status=CommandStatus.SENT,
                )
            )
            log_id = entry.id
        except StoreError:
            log.exception("Failed to log %s command for %s", command_type, device_id)

        published = False
        try:
            published = await self.broker.publish(topic, data)
        except PublishError as exc:
            log.error("Publish of %s to %s failed: %s", command_type, topic, exc)
        if published:
            log.info("Dispatched %s to %s via %s", command_type, device_id, topic)
        else:
            log.warning("Command %s for %s logged but not published", command_type, device_id)
        return DispatchResult(log_id=log_id, published=published, payload=data)

    async def send_control_command(
        self,
        device_id: str | None,
        command_data: Mapping[str, Any],
        sent_by: str = "mobile_app",
    ) -> tuple[CommandType, DispatchResult]:
        """Operator entry point: validate, then dispatch on the control topic."""
        if not device_id:
            raise ValidationError("device_id is required")
        command = command_data.get("command")
        if command is not None and command not in ALLOWED_COMMANDS:
            raise ValidationError(
                f"Unknown command {command!r}. Allowed commands: {', '.join(ALLOWED_COMMANDS)}"
            )

        extra = {
            key: value
            for key, value in command_data.items()
            if key not in {"device_id", "motor_enabled", "alarm_enabled", "direction", "speed"}
        }
        payload = {
            "device_id": device_id,
            "motor_enabled": command_data.get("motor_enabled"),
            "alarm_enabled": command_data.get("alarm_enabled"),
            "direction": command_data.get("direction"),
            "speed": command_data.get("speed"),
            **extra,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        command_type = classify_command(command_data)
        result = await self.dispatch(device_id, command_type, payload, sent_by)
        return command_type, result

    async def update_status(
        self, log_id: int, status: CommandStatus | str, executed_at: datetime | None = None
    ) -> ControlLogEntry:
        try:
            status = CommandStatus(status)
        except ValueError:
            allowed = ", ".join(s.value for s in CommandStatus)
            raise ValidationError(f"Unknown status {status!r}. Allowed: {allowed}") from None
        if status is CommandStatus.ACK and executed_at is None:
            executed_at = datetime.now(timezone.utc)

        values: dict[str, Any] = {"status": status}
        if executed_at is not None:
            values["executed_at"] = executed_at
        entry = await self.ledger.update(ControlLogEntry, log_id, values)
        if entry is None:
            raise NotFoundError(f"Control log {log_id} not found")
        return entry
