from fastapi import Depends

from loadguard.core.config import Settings, get_settings
from loadguard.db.session import AsyncSessionLocal
from loadguard.services.broker import BrokerConnection
from loadguard.services.devices import DeviceRegistry
from loadguard.services.dispatcher import ControlDispatcher
from loadguard.services.ingestor import TelemetryIngestor
from loadguard.services.ledger import Ledger
from loadguard.services.message_handler import MessageHandler
from loadguard.services.settings_resolver import SettingsResolver

# Process-wide singletons; the ingestor holds the per-device locks
ledger = Ledger(AsyncSessionLocal)
broker = BrokerConnection(get_settings())
_dispatcher = ControlDispatcher(ledger, broker, get_settings())
_resolver = SettingsResolver(ledger, _dispatcher, get_settings().default_max_weight)
ingestor = TelemetryIngestor(ledger, _resolver, _dispatcher, get_settings().default_device_id)
message_handler = MessageHandler(get_settings(), ingestor)


def get_app_settings() -> Settings:
    return get_settings()


def get_ledger() -> Ledger:
    return ledger


def get_broker() -> BrokerConnection:
    return broker


def get_dispatcher(
    ledger: Ledger = Depends(get_ledger),
    broker: BrokerConnection = Depends(get_broker),
    settings: Settings = Depends(get_app_settings),
) -> ControlDispatcher:
    return ControlDispatcher(ledger, broker, settings)


def get_settings_resolver(
    ledger: Ledger = Depends(get_ledger),
    dispatcher: ControlDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_app_settings),
) -> SettingsResolver:
    return SettingsResolver(ledger, dispatcher, settings.default_max_weight)


def get_device_registry(
    ledger: Ledger = Depends(get_ledger),
    resolver: SettingsResolver = Depends(get_settings_resolver),
) -> DeviceRegistry:
    return DeviceRegistry(ledger, resolver)
