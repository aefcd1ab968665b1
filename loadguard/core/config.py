from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = "LoadGuard Gateway"
    environment: str = "dev"
    database_url: str = "sqlite+aiosqlite:///./loadguard.db"
    log_level: str = "INFO"
    http_host: str = "0.0.0.0"
    http_port: int = 3000

    mqtt_host: str | None = None
    mqtt_port: int | None = 8883
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_client_id: str | None = None
    mqtt_tls: bool = True
    mqtt_keepalive: int = 60
    mqtt_connect_timeout: float = 30.0
    mqtt_reconnect_interval: float = 5.0
    mqtt_settle_delay: float = 0.5

    topic_telemetry: str = "telemetry/weight"
    topic_status: str = "device/status"
    topic_control: str = "device/control"
    topic_settings: str = "device/settings"

    default_max_weight: float = Field(default=500.0, gt=0)
    default_device_id: str = "default_device"

    model_config = SettingsConfigDict(env_prefix="LOADGUARD_", env_file=".env", extra="ignore")

    @property
    def inbound_topics(self) -> tuple[str, ...]:
        return (self.topic_telemetry, self.topic_status)


@lru_cache
def get_settings() -> Settings:
    return Settings()
