"""HTTP and WebSocket transport.

  POST /api/update   producer submits a snapshot
  GET  /api/stats    aggregated state + uptime + server time
  GET  /             dashboard page
  WS   /, /ws        live updates (one "initial" message, then every update)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from json import JSONDecodeError
from pathlib import Path
from typing import Any

from fastapi import APIRouter, FastAPI, Request, WebSocket
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.websockets import WebSocketState

from statshub import __version__
from statshub.config import HubConfig
from statshub.exceptions import HubIngestError, HubSendError, HubValidationError
from statshub.gateway import Credentials
from statshub.hub import StatsHub

_logger = logging.getLogger(__name__)

DASHBOARD_FILE = "dashboard.html"

router = APIRouter()


class WebSocketSubscriber:
    """Adapts a Starlette :class:`WebSocket` to the hub's subscriber protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, message: str) -> None:
        await self._websocket.send_text(message)


def _hub(app: Any) -> StatsHub:
    hub: StatsHub = app.state.hub
    return hub


@router.post("/api/update")
async def update_stats(request: Request) -> JSONResponse:
    """Accept one snapshot from the producer and broadcast the new state."""
    credentials = Credentials.from_headers(request.headers)
    hub = _hub(request.app)
    hub.gateway.authorize(credentials)
    try:
        payload = await request.json()
    except (JSONDecodeError, UnicodeDecodeError) as exc:
        raise HubValidationError(
            "Invalid analytics data format",
            expected="JSON object",
            received="unparseable body",
        ) from exc

    result = await hub.submit(credentials, payload)
    return JSONResponse({"status": "success", "received": result.entry.to_wire(exclude_none=True)})


@router.get("/api/stats")
async def get_stats(request: Request) -> JSONResponse:
    """Return the aggregated state with uptime and server time."""
    return JSONResponse(_hub(request.app).stats().to_wire())


@router.get("/")
async def dashboard(request: Request) -> Any:
    static_dir = Path(_hub(request.app).config.static_dir)
    page = static_dir / DASHBOARD_FILE
    if page.is_file():
        return FileResponse(str(page))
    return JSONResponse({"error": "Not Found", "details": "dashboard is not installed"}, status_code=404)


@router.websocket("/")
@router.websocket("/ws")
async def live_updates(websocket: WebSocket) -> None:
    await websocket.accept()
    hub = _hub(websocket.app)
    handle = WebSocketSubscriber(websocket)
    try:
        await hub.subscribe(handle)
    except HubSendError:
        _logger.debug("Initial message could not be delivered, dropping connection")
        return

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        await hub.unsubscribe(handle)


async def _ingest_error_handler(request: Request, exc: HubIngestError) -> JSONResponse:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def create_app(config: HubConfig | None = None, *, hub: StatsHub | None = None) -> FastAPI:
    """Build the FastAPI application.

    The hub is started and shut down by the application lifespan, so the
    final checkpoint is written before the server process exits.
    """
    if hub is None:
        hub = StatsHub(config or HubConfig.from_env())

    @asynccontextmanager
    async def lifespan(application: FastAPI) -> AsyncIterator[None]:
        async with hub:
            application.state.hub = hub
            yield

    application = FastAPI(
        title="statshub",
        version=__version__,
        description="Aggregates bot telemetry snapshots and streams them to dashboards.",
        lifespan=lifespan,
    )
    application.state.hub = hub
    application.add_exception_handler(HubIngestError, _ingest_error_handler)
    application.include_router(router)

    static_dir = Path(hub.config.static_dir)
    if static_dir.is_dir():
        application.mount("/", StaticFiles(directory=str(static_dir)), name="static")

    return application
