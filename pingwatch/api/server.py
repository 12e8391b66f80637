"""FastAPI server for the uptime monitor."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pingwatch import __version__
from pingwatch.api.routes import router
from pingwatch.config import Settings, settings as default_settings
from pingwatch.errors import PingwatchError
from pingwatch.services import Services, build_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the background worker alongside the API when configured."""
    services: Services = app.state.services
    if services.settings.run_worker_in_api:
        try:
            await services.worker.start()
        except Exception:
            logger.exception("Worker failed to start")
    yield
    await services.worker.stop()


async def _pingwatch_error(request: Request, exc: PingwatchError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"Error": exc.message})


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"Error": "Missing required fields, or fields are invalid"})


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    app = FastAPI(
        title="pingwatch - Uptime Monitor",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services or build_services(settings or default_settings)

    app.add_exception_handler(PingwatchError, _pingwatch_error)
    app.add_exception_handler(RequestValidationError, _invalid_request)

    app.include_router(router, prefix="/api")
    return app
