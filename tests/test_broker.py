"""Tests for the broker connection lifecycle."""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import aiomqtt
import pytest

from loadguard.core.config import Settings
from loadguard.core.errors import ConfigError, PublishError
from loadguard.services.broker import BrokerConnection


def make_settings(**overrides) -> Settings:
    values = {
        "mqtt_host": "broker.local",
        "mqtt_port": 8883,
        "mqtt_username": "gateway",
        "mqtt_password": "secret",
        "mqtt_settle_delay": 0.01,
        "mqtt_reconnect_interval": 0.01,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_message(topic: str, payload: bytes):
    return SimpleNamespace(topic=SimpleNamespace(value=topic), payload=payload)


class FakeMqttClient:
    def __init__(self, messages=(), fail_on_enter: bool = False) -> None:
        self.subscribe = AsyncMock()
        self.publish = AsyncMock()
        self._messages = list(messages)
        self.fail_on_enter = fail_on_enter

    async def __aenter__(self):
        if self.fail_on_enter:
            raise aiomqtt.MqttError("connection refused")
        return self

    async def __aexit__(self, *exc_info):
        return None

    @property
    def messages(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._messages:
            yield message
        # Stay connected until cancelled
        await asyncio.Event().wait()


def subscribed_topics(client: FakeMqttClient) -> list[str]:
    return sorted(call.args[0] for call in client.subscribe.await_args_list)


@pytest.mark.asyncio
async def test_connect_requires_credentials():
    broker = BrokerConnection(make_settings(mqtt_password=None))

    with pytest.raises(ConfigError) as excinfo:
        await broker.connect()

    assert "mqtt_password" in str(excinfo.value)
    assert broker.is_connected is False


@pytest.mark.asyncio
async def test_publish_fails_fast_when_disconnected():
    broker = BrokerConnection(make_settings())

    assert await broker.publish("device/control", {"motor_enabled": True}) is False


@pytest.mark.asyncio
async def test_publish_encodes_structured_payloads():
    broker = BrokerConnection(make_settings())
    client = FakeMqttClient()
    broker.handle_connected(client)

    assert await broker.publish("device/control", {"motor_enabled": False}) is True
    assert await broker.publish("device/raw", "plain text") is True

    client.publish.assert_any_await("device/control", payload='{"motor_enabled": false}', qos=1, retain=False)
    client.publish.assert_any_await("device/raw", payload="plain text", qos=1, retain=False)
    await broker.close()


@pytest.mark.asyncio
async def test_publish_rejection_raises():
    broker = BrokerConnection(make_settings())
    client = FakeMqttClient()
    client.publish.side_effect = aiomqtt.MqttError("not authorized")
    broker.handle_connected(client)

    with pytest.raises(PublishError):
        await broker.publish("device/control", {"motor_enabled": False})
    await broker.close()


@pytest.mark.asyncio
async def test_repeated_connect_events_subscribe_once():
    broker = BrokerConnection(make_settings())
    client = FakeMqttClient()

    broker.handle_connected(client)
    broker.handle_connected(client)
    await asyncio.sleep(0.05)

    assert broker.subscribed is True
    assert subscribed_topics(client) == ["device/status", "telemetry/weight"]
    assert all(call.kwargs == {"qos": 1} for call in client.subscribe.await_args_list)

    await broker.subscribe_topics()
    assert client.subscribe.await_count == 2
    await broker.close()


@pytest.mark.asyncio
async def test_disconnect_resets_subscription():
    broker = BrokerConnection(make_settings())
    first = FakeMqttClient()
    broker.handle_connected(first)
    await asyncio.sleep(0.05)

    broker.handle_disconnected()

    assert broker.subscribed is False
    assert broker.is_connected is False

    second = FakeMqttClient()
    broker.handle_connected(second)
    await asyncio.sleep(0.05)

    assert broker.subscribed is True
    assert subscribed_topics(second) == ["device/status", "telemetry/weight"]
    await broker.close()


@pytest.mark.asyncio
async def test_disconnect_before_settle_cancels_subscribe():
    broker = BrokerConnection(make_settings(mqtt_settle_delay=0.05))
    client = FakeMqttClient()

    broker.handle_connected(client)
    broker.handle_disconnected()
    await asyncio.sleep(0.1)

    client.subscribe.assert_not_awaited()
    assert broker.subscribed is False


@pytest.mark.asyncio
async def test_subscribe_without_connection_is_a_no_op():
    broker = BrokerConnection(make_settings())

    await broker.subscribe_topics()

    assert broker.subscribed is False


@pytest.mark.asyncio
async def test_supervisor_reconnects_and_delivers_messages():
    clients = [
        FakeMqttClient(fail_on_enter=True),
        FakeMqttClient(messages=[make_message("telemetry/weight", b'{"weight": 1}')]),
    ]
    created = iter(clients)
    broker = BrokerConnection(make_settings(), client_factory=lambda: next(created))
    received: asyncio.Queue = asyncio.Queue()

    async def on_message(topic, payload):
        await received.put((topic, payload))

    broker.set_message_handler(on_message)

    assert await broker.connect() is broker
    assert await broker.connect() is broker

    topic, payload = await asyncio.wait_for(received.get(), timeout=1)
    assert topic == "telemetry/weight"
    assert payload == b'{"weight": 1}'
    assert broker.is_connected

    await asyncio.sleep(0.05)
    assert subscribed_topics(clients[1]) == ["device/status", "telemetry/weight"]

    await broker.close()
    assert broker.is_connected is False
    assert broker.subscribed is False


@pytest.mark.asyncio
async def test_supervisor_survives_unexpected_client_errors():
    second = FakeMqttClient()
    attempts = []

    def factory():
        attempts.append(len(attempts))
        if len(attempts) == 1:
            raise OSError("dns down")
        return second

    broker = BrokerConnection(make_settings(), client_factory=factory)
    await broker.connect()
    await asyncio.sleep(0.1)

    assert len(attempts) == 2
    assert broker.is_connected
    assert subscribed_topics(second) == ["device/status", "telemetry/weight"]

    await broker.close()
    assert broker.is_connected is False


@pytest.mark.asyncio
async def test_handler_errors_do_not_stop_delivery():
    client = FakeMqttClient(
        messages=[
            make_message("telemetry/weight", b"first"),
            make_message("telemetry/weight", b"second"),
        ]
    )
    broker = BrokerConnection(make_settings(), client_factory=lambda: client)
    received: asyncio.Queue = asyncio.Queue()

    async def on_message(topic, payload):
        if payload == b"first":
            raise RuntimeError("boom")
        await received.put(payload)

    broker.set_message_handler(on_message)
    await broker.connect()

    assert await asyncio.wait_for(received.get(), timeout=1) == b"second"
    await broker.close()
