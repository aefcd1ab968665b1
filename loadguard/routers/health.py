from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from loadguard.core.config import Settings
from loadguard.deps import get_app_settings, get_broker
from loadguard.services.broker import BrokerConnection

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(
    broker: BrokerConnection = Depends(get_broker),
    settings: Settings = Depends(get_app_settings),
):
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name,
        "mqtt_connected": broker.is_connected,
        "mqtt_subscribed": broker.subscribed,
    }
