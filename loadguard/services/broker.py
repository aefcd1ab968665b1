"""Single owned MQTT connection for the gateway process.

One supervisor task holds the connection: it connects, re-subscribes after
every (re)connect, feeds inbound messages to the registered handler one at a
time, and reconnects at a fixed interval forever. Connection state is only
mutated from that task's own handlers.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import ssl
from typing import Any, Awaitable, Callable
from uuid import uuid4

import aiomqtt
from pydantic import BaseModel

from loadguard.core.config import Settings
from loadguard.core.errors import ConfigError, PublishError

log = logging.getLogger("mqtt")

MessageHandler = Callable[[str, Any], Awaitable[None]]

_REQUIRED_SETTINGS = ("mqtt_host", "mqtt_port", "mqtt_username", "mqtt_password")


def encode_payload(payload: Any) -> str | bytes:
    if isinstance(payload, (str, bytes)):
        return payload
    if isinstance(payload, BaseModel):
        return payload.model_dump_json()
    return json.dumps(payload, default=str)


class BrokerConnection:
    def __init__(
        self,
        settings: Settings,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.settings = settings
        self.client_id = settings.mqtt_client_id or f"loadguard-gateway-{uuid4().hex[:9]}"
        self._client_factory = client_factory or self._build_client
        self._client: Any = None
        self._handler: MessageHandler | None = None
        self._supervisor: asyncio.Task | None = None
        self._pending_subscribes: set[asyncio.Task] = set()
        self.subscribed = False

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._handler = handler

    async def connect(self) -> "BrokerConnection":
        if self._supervisor is not None and not self._supervisor.done():
            if self.is_connected:
                log.info("Already connected to %s", self.settings.mqtt_host)
            return self

        missing = [name for name in _REQUIRED_SETTINGS if not getattr(self.settings, name)]
        if missing:
            raise ConfigError(f"Missing broker configuration: {', '.join(missing)}")

        log.info(
            "Connecting to mqtt%s://%s:%s as %s",
            "s" if self.settings.mqtt_tls else "",
            self.settings.mqtt_host,
            self.settings.mqtt_port,
            self.client_id,
        )
        self._supervisor = asyncio.create_task(self._supervise(), name="mqtt-supervisor")
        return self

    async def close(self) -> None:
        task, self._supervisor = self._supervisor, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.handle_disconnected()

    async def publish(self, topic: str, payload: Any, *, qos: int = 1, retain: bool = False) -> bool:
        """Send ``payload`` to ``topic``; returns False without queueing when offline."""
        client = self._client
        if client is None:
            log.error("Cannot publish to %s - client not connected", topic)
            return False
        body = encode_payload(payload)
        try:
            await client.publish(topic, payload=body, qos=qos, retain=retain)
        except aiomqtt.MqttError as exc:
            raise PublishError(f"Failed to publish to {topic}: {exc}") from exc
        log.debug("Published to %s: %s", topic, body)
        return True

    def handle_connected(self, client: Any) -> None:
        self._client = client
        self.subscribed = False
        log.info("Connected to %s", self.settings.mqtt_host)
        task = asyncio.create_task(self._subscribe_after_settle())
        self._pending_subscribes.add(task)
        task.add_done_callback(self._pending_subscribes.discard)

    def handle_disconnected(self) -> None:
        if self._client is not None:
            log.warning("Disconnected from %s", self.settings.mqtt_host)
        self._client = None
        self.subscribed = False
        for task in list(self._pending_subscribes):
            task.cancel()

    async def subscribe_topics(self) -> None:
        client = self._client
        if client is None:
            log.warning("Cannot subscribe - client not connected")
            return
        if self.subscribed:
            log.debug("Already subscribed to topics")
            return
        # Claimed before awaiting so overlapping settle timers subscribe once
        self.subscribed = True
        for topic in self.settings.inbound_topics:
            try:
                await client.subscribe(topic, qos=1)
            except aiomqtt.MqttError as exc:
                log.error("Failed to subscribe to %s: %s", topic, exc)
                self.subscribed = False
            else:
                log.info("Subscribed to topic: %s", topic)

    async def _subscribe_after_settle(self) -> None:
        await asyncio.sleep(self.settings.mqtt_settle_delay)
        await self.subscribe_topics()

    async def _supervise(self) -> None:
        interval = self.settings.mqtt_reconnect_interval
        while True:
            try:
                client = self._client_factory()
                async with client:
                    self.handle_connected(client)
                    async for message in client.messages:
                        await self._deliver(message)
            except aiomqtt.MqttError as exc:
                log.error("Connection error: %s", exc)
            except Exception:
                log.exception("Unexpected broker connection failure")
            finally:
                self.handle_disconnected()
            log.info("Reconnecting in %.1fs", interval)
            await asyncio.sleep(interval)

    async def _deliver(self, message: Any) -> None:
        topic = message.topic.value
        if self._handler is None:
            log.debug("No handler registered, dropping message on %s", topic)
            return
        try:
            await self._handler(topic, message.payload)
        except Exception:
            log.exception("Error processing message on %s", topic)

    def _build_client(self) -> aiomqtt.Client:
        settings = self.settings
        return aiomqtt.Client(
            settings.mqtt_host,
            port=settings.mqtt_port,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            identifier=self.client_id,
            clean_session=True,
            keepalive=settings.mqtt_keepalive,
            timeout=settings.mqtt_connect_timeout,
            tls_context=ssl.create_default_context() if settings.mqtt_tls else None,
        )
