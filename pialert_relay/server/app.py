"""
PiAlert Relay Server - FastAPI control surface

Routes:
    GET  /api/status          -> Controller snapshot (relay state, last alert, config)
    GET  /api/history         -> Recent poll records, newest first
    POST /api/relay/toggle    -> Manual override: flip the relay
    POST /api/relay/on        -> Manual override: force ON
    POST /api/relay/off       -> Manual override: force OFF
    GET  /health              -> Liveness summary

Lifecycle:
    create_app() builds the output device, controller, history, client and
    poll loop and stores them on app.state. The lifespan handler starts the
    poll loop and, on shutdown, stops it and forces a final OFF write.
"""
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pialert_relay import __version__
from pialert_relay.client import AlertClient
from pialert_relay.config import Settings
from pialert_relay.controller import RelayController
from pialert_relay.devices import GpioOutputDevice, OutputDevice, SimulatedOutputDevice
from pialert_relay.exceptions import ControllerClosedError, DeviceWriteError
from pialert_relay.history import PollHistory
from pialert_relay.poll_loop import PollLoop
from pialert_relay.server import api

logger = logging.getLogger(__name__)


def build_device(settings: Settings) -> OutputDevice:
    if settings.simulate:
        logger.info("Relay simulation enabled (RELAY_SIMULATE) - no GPIO output")
        return SimulatedOutputDevice()
    return GpioOutputDevice(settings.relay_pin, active_high=settings.relay_active_high)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the poll loop on startup; stop it and release the relay on shutdown."""
    settings: Settings = app.state.settings
    logger.info(f"Starting PiAlert Relay Controller v{__version__}")
    logger.info(f"API URL: {settings.api_url}")
    logger.info(f"Poll Interval: {settings.poll_interval_ms}ms")
    if settings.simulate:
        logger.info("GPIO Pin: simulated")
    else:
        logger.info(f"GPIO Pin: {settings.relay_pin}")
    app.state.poll_loop.start()

    yield

    logger.info("Shutting down...")
    try:
        await app.state.poll_loop.shutdown()
    except DeviceWriteError as e:
        app.state.shutdown_error = e
        logger.critical(f"Final relay OFF write failed: {e}")


def exit_code(app: FastAPI) -> int:
    """1 if the relay could not be written (during polling or the final OFF), else 0."""
    if app.state.poll_loop.fatal_error is not None or app.state.shutdown_error is not None:
        return 1
    return 0


def create_app(settings: Settings, device: Optional[OutputDevice] = None, client: Optional[AlertClient] = None,
               on_fatal: Optional[Callable[[BaseException], None]] = None) -> FastAPI:
    """Assemble the application and its core components."""
    history = PollHistory(settings.history_size)
    controller = RelayController(
        device if device is not None else build_device(settings),
        history,
        api_url=settings.api_url,
        poll_interval_ms=settings.poll_interval_ms,
    )
    if client is None:
        client = AlertClient(settings.api_url, settings.api_key, timeout=settings.request_timeout_seconds)
    poll_loop = PollLoop(client, controller, interval=settings.poll_interval_seconds, on_fatal=on_fatal)

    app = FastAPI(
        title="PiAlert Relay Controller",
        description="Drives a relay from PiAlert alert status with manual override",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.history = history
    app.state.controller = controller
    app.state.poll_loop = poll_loop
    app.state.shutdown_error = None

    @app.exception_handler(DeviceWriteError)
    async def device_write_error_handler(request: Request, exc: DeviceWriteError):
        logger.error(f"Relay write failed on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": f"Relay write failed, relay may be in an unknown state: {exc}"},
        )

    @app.exception_handler(ControllerClosedError)
    async def controller_closed_handler(request: Request, exc: ControllerClosedError):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    app.include_router(api.router)
    return app


def run_server(settings: Settings) -> int:
    """Run the control surface with uvicorn until interrupted.

    Returns the process exit code: 0 after a graceful shutdown, 1 if the poll
    loop stopped on a relay write failure or the final OFF write failed.
    """
    import uvicorn

    server: Optional[uvicorn.Server] = None

    def stop_on_fatal(exc: BaseException) -> None:
        logger.critical(f"Unrecoverable relay failure, exiting: {exc}")
        if server is not None:
            server.should_exit = True

    app = create_app(settings, on_fatal=stop_on_fatal)
    config = uvicorn.Config(app, host=settings.server_host, port=settings.server_port,
                            log_level="debug" if settings.debug else "info")
    server = uvicorn.Server(config)
    logger.info(f"Relay controller listening on {settings.server_host}:{settings.server_port}")
    server.run()
    return exit_code(app)
