from fastapi import APIRouter

from . import control, devices, events, health, settings, telemetry

API_ROUTERS: tuple[APIRouter, ...] = (
    devices.router,
    settings.router,
    telemetry.router,
    events.router,
    control.router,
)

ALL_ROUTERS: tuple[APIRouter, ...] = (health.router,) + API_ROUTERS

__all__ = ["API_ROUTERS", "ALL_ROUTERS"]
