from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PayloadError

from loadguard.core.config import Settings
from loadguard.core.errors import StoreError, ValidationError
from loadguard.schemas.messages import DeviceStatusMessage, TelemetryMessage
from loadguard.services.ingestor import ProcessingResult, TelemetryIngestor

log = logging.getLogger("mqtt.handler")


class MessageHandler:
    """Routes inbound broker messages to the engine by topic.

    Payloads are validated against the topic schema here; anything malformed
    is logged and dropped so it never reaches the state machine.
    """

    def __init__(self, settings: Settings, ingestor: TelemetryIngestor):
        self.settings = settings
        self.ingestor = ingestor

    async def __call__(self, topic: str, payload: Any) -> ProcessingResult | None:
        if isinstance(payload, (bytes, bytearray)):
            payload = payload.decode("utf-8", errors="replace")
        log.debug("Received message on %s: %s", topic, payload)

        if topic == self.settings.topic_telemetry:
            return await self._handle_telemetry(payload)
        if topic == self.settings.topic_status:
            self._handle_status(payload)
            return None
        log.debug("Ignoring message on unhandled topic %s", topic)
        return None

    async def _handle_telemetry(self, payload: str) -> ProcessingResult | None:
        try:
            message = TelemetryMessage.model_validate_json(payload)
        except PayloadError as exc:
            log.warning("Dropping malformed telemetry payload: %s", exc)
            return None
        try:
            return await self.ingestor.ingest(message.device_id, message.weight)
        except ValidationError as exc:
            log.warning("Rejected telemetry from %s: %s", message.device_id, exc)
        except StoreError:
            log.exception("Aborted telemetry from %s", message.device_id)
        return None

    def _handle_status(self, payload: str) -> None:
        try:
            status = DeviceStatusMessage.model_validate_json(payload)
        except PayloadError as exc:
            log.warning("Dropping malformed device status payload: %s", exc)
            return
        log.info("Received device status from %s: %s", status.device_id, status.model_dump())
