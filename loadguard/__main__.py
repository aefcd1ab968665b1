"""Entry point: serve the gateway API and run the broker connection."""

import uvicorn

from loadguard.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "loadguard.app_factory:create_app",
        factory=True,
        host=settings.http_host,
        port=settings.http_port,
        log_level=settings.log_level.lower(),
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
