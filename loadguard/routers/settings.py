from fastapi import APIRouter, Depends, Request

from loadguard.deps import get_settings_resolver
from loadguard.schemas.api import Envelope, SettingOut, SettingsUpdateIn, ThresholdOut
from loadguard.services.settings_resolver import SettingsResolver

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=Envelope[ThresholdOut], response_model_exclude_none=True)
async def get_threshold(
    device_id: str | None = None,
    resolver: SettingsResolver = Depends(get_settings_resolver),
):
    max_weight = await resolver.resolve(device_id)
    if device_id:
        return Envelope(data=ThresholdOut(max_weight=max_weight, device_id=device_id))
    return Envelope(data=ThresholdOut(max_weight=max_weight, scope="global"))


@router.post("", response_model=Envelope[SettingOut])
async def update_threshold(
    payload: SettingsUpdateIn,
    request: Request,
    resolver: SettingsResolver = Depends(get_settings_resolver),
):
    updated_by = request.headers.get("user-agent") or "mobile_app"
    setting = await resolver.update(payload.max_weight, payload.device_id or None, updated_by)
    return Envelope(data=SettingOut.model_validate(setting))
