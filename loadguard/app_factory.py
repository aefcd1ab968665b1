import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from loadguard.core.config import get_settings
from loadguard.core.errors import ConfigError, GatewayError
from loadguard.core.log_config import configure_logging
from loadguard.db.session import init_db
from loadguard.deps import broker, message_handler
from loadguard.routers.groups import ALL_ROUTERS
from loadguard.schemas.api import ErrorOut

log = logging.getLogger("gateway")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    await init_db()
    broker.set_message_handler(message_handler)
    try:
        await broker.connect()
    except ConfigError as exc:
        log.error("MQTT disabled: %s", exc)
    try:
        yield
    finally:
        await broker.close()


async def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=ErrorOut(error=exc.message).model_dump())


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title=settings.app_name, lifespan=_lifespan)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")
    app.add_exception_handler(GatewayError, _gateway_error_handler)
    for router in ALL_ROUTERS:
        app.include_router(router)
    return app
