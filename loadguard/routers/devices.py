from fastapi import APIRouter, Depends

from loadguard.deps import get_device_registry
from loadguard.schemas.api import DeviceOut, DeviceRegisterIn, DeviceStatusOut, Envelope, TelemetryOut
from loadguard.services.devices import DeviceRegistry

router = APIRouter(prefix="/api/devices", tags=["devices"])


@router.post("/register", response_model=Envelope[DeviceOut])
async def register_device(
    payload: DeviceRegisterIn,
    registry: DeviceRegistry = Depends(get_device_registry),
):
    device = await registry.register(payload.device_id, name=payload.name, location=payload.location)
    return Envelope(data=DeviceOut.model_validate(device))


@router.get("/{device_id}/status", response_model=Envelope[DeviceStatusOut])
async def get_device_status(
    device_id: str,
    registry: DeviceRegistry = Depends(get_device_registry),
):
    snapshot = await registry.get_status_with_telemetry(device_id)
    last = snapshot.last_telemetry
    return Envelope(
        data=DeviceStatusOut(
            device_id=snapshot.device_id,
            current_weight=snapshot.current_weight,
            is_overload=snapshot.is_overload,
            motor_enabled=snapshot.motor_enabled,
            alarm_active=snapshot.alarm_active,
            last_update=snapshot.last_update,
            last_telemetry=TelemetryOut.model_validate(last) if last is not None else None,
        )
    )
