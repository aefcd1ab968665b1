from . import control, devices, events, health, settings, telemetry

__all__ = [
    "control",
    "devices",
    "events",
    "health",
    "settings",
    "telemetry",
]
