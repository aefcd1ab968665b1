"""Tests for command logging, publishing and acknowledgment."""
from datetime import datetime, timezone

import pytest

from loadguard.core.errors import NotFoundError, PublishError, ValidationError
from loadguard.models.entities import ControlLogEntry
from loadguard.models.enums import CommandStatus, CommandType
from loadguard.services.dispatcher import ALLOWED_COMMANDS


@pytest.mark.asyncio
async def test_command_is_logged_before_publish(dispatcher, ledger, broker, monkeypatch):
    calls = []
    original_insert = ledger.insert
    original_publish = broker.publish

    async def tracking_insert(record):
        calls.append("log")
        return await original_insert(record)

    async def tracking_publish(topic, payload, **kwargs):
        calls.append("publish")
        return await original_publish(topic, payload, **kwargs)

    monkeypatch.setattr(ledger, "insert", tracking_insert)
    monkeypatch.setattr(broker, "publish", tracking_publish)

    result = await dispatcher.dispatch("D1", CommandType.MOTOR_CONTROL, {"motor_enabled": True}, "system")

    assert calls == ["log", "publish"]
    assert result.published
    assert result.log_id is not None


@pytest.mark.asyncio
async def test_rejected_publish_keeps_log_entry(dispatcher, ledger, broker, monkeypatch):
    async def rejecting(*args, **kwargs):
        raise PublishError("broker rejected publish")

    monkeypatch.setattr(broker, "publish", rejecting)

    result = await dispatcher.dispatch("D1", CommandType.MOTOR_CONTROL, {"motor_enabled": False}, "system")

    assert result.published is False
    entry = await ledger.get(ControlLogEntry, result.log_id)
    assert entry.status is CommandStatus.SENT
    assert entry.command_data == {"motor_enabled": False}


@pytest.mark.asyncio
async def test_unknown_operator_command_is_rejected(dispatcher, ledger, broker):
    with pytest.raises(ValidationError) as excinfo:
        await dispatcher.send_control_command("D1", {"command": "fly"})

    for name in ALLOWED_COMMANDS:
        assert name in str(excinfo.value)
    assert broker.published == []
    assert await ledger.query(ControlLogEntry) == []


@pytest.mark.asyncio
async def test_operator_command_requires_device(dispatcher):
    with pytest.raises(ValidationError):
        await dispatcher.send_control_command(None, {"command": "stop"})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ({"direction": "forward", "speed": 40}, CommandType.MOVEMENT_CONTROL),
        ({"motor_enabled": True, "alarm_enabled": False}, CommandType.MOTOR_CONTROL),
        ({"alarm_enabled": True}, CommandType.ALARM_CONTROL),
        ({"motor_enabled": False}, CommandType.MANUAL_CONTROL),
        ({"command": "reset"}, CommandType.MANUAL_CONTROL),
    ],
)
async def test_operator_command_classification(dispatcher, ledger, broker, settings, body, expected):
    command_type, result = await dispatcher.send_control_command("D1", body, sent_by="operator")

    assert command_type is expected
    published = broker.on(settings.topic_control)[0]
    assert published["device_id"] == "D1"
    assert "timestamp" in published
    for key in ("motor_enabled", "alarm_enabled", "direction", "speed"):
        assert published[key] == body.get(key)

    entry = await ledger.get(ControlLogEntry, result.log_id)
    assert entry.command_type == expected.value
    assert entry.sent_by == "operator"


@pytest.mark.asyncio
async def test_ack_stamps_execution_time(dispatcher):
    result = await dispatcher.dispatch("D1", CommandType.MOTOR_CONTROL, {"motor_enabled": True}, "system")

    entry = await dispatcher.update_status(result.log_id, "ack")

    assert entry.status is CommandStatus.ACK
    assert entry.executed_at is not None


@pytest.mark.asyncio
async def test_ack_keeps_explicit_execution_time(dispatcher):
    result = await dispatcher.dispatch("D1", CommandType.MOTOR_CONTROL, {"motor_enabled": True}, "system")
    executed_at = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    entry = await dispatcher.update_status(result.log_id, CommandStatus.ACK, executed_at)

    assert entry.executed_at == executed_at


@pytest.mark.asyncio
async def test_update_status_errors(dispatcher):
    with pytest.raises(NotFoundError):
        await dispatcher.update_status(9999, "ack")

    result = await dispatcher.dispatch("D1", CommandType.MOTOR_CONTROL, {}, "system")
    with pytest.raises(ValidationError):
        await dispatcher.update_status(result.log_id, "done")
