"""Error taxonomy shared by the engine and the HTTP layer."""


class GatewayError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(GatewayError):
    """Broker credentials or other required configuration are missing."""


class ValidationError(GatewayError):
    """Caller supplied input the engine refuses to act on."""

    status_code = 400


class NotFoundError(GatewayError):
    status_code = 404


class StoreError(GatewayError):
    """A Ledger operation failed."""


class PublishError(GatewayError):
    """The broker is unreachable or rejected a publish."""

    status_code = 502
