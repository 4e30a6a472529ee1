"""
Poll Loop - background task driving the relay controller.

Data Flow:
    1. Every POLL_INTERVAL the loop calls AlertClient.poll() in a worker thread
    2. The classified outcome is passed to RelayController.evaluate() (also in
       a worker thread, since it writes the output device)
    3. The controller commits state and appends the record to PollHistory

Error Handling:
    - Transport, auth, rate-limit and API errors are outcomes, never exceptions
    - A hung poll is abandoned after the request timeout plus a grace period
      and recorded as a transport error
    - While an abandoned poll thread is still running no new request is
      submitted; the tick is recorded as a transport error instead
    - DeviceWriteError is fatal: the loop stops and on_fatal() is invoked

Executors:
    Polls run on their own single worker. Controller calls (evaluate and the
    final shutdown) run on a separate worker, so a stuck HTTP request can
    never starve the relay writes.

Shutdown:
    shutdown() stops scheduling, waits for the in-flight tick to finish, then
    lets the controller write a final OFF and release the device.
"""
import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from pialert_relay.client import AlertClient
from pialert_relay.controller import RelayController
from pialert_relay.exceptions import ControllerClosedError, DeviceWriteError
from pialert_relay.models import PollOutcome, PollRecord, TransportError

log = logging.getLogger(__name__)

TICK_GRACE_SECONDS = 1.0


class PollLoop:
    """Schedules poll ticks on a fixed period."""

    def __init__(self, client: AlertClient, controller: RelayController, interval: float = 30.0,
                 on_fatal: Optional[Callable[[BaseException], None]] = None):
        self.client = client
        self.controller = controller
        self.interval = interval
        self.on_fatal = on_fatal
        self.fatal_error: Optional[BaseException] = None
        self.tick_count = 0
        self._task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None
        self._stopped = False
        self._in_flight: Optional[Future] = None
        self._poll_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pialert-poll")
        self._control_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pialert-relay")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        log.info(f"Poll loop started - every {self.interval:g}s")

    async def run_once(self) -> PollRecord:
        """Perform a single poll tick and return the committed record."""
        loop = asyncio.get_running_loop()
        outcome = await self._poll()
        record = await loop.run_in_executor(self._control_executor, self.controller.evaluate, outcome)
        self.tick_count += 1
        return record

    async def _poll(self) -> PollOutcome:
        if self._in_flight is not None and not self._in_flight.done():
            log.warning("Previous poll still in progress - skipping request")
            return TransportError(message="Previous poll still in progress")
        tick_timeout = getattr(self.client, "timeout", self.interval) + TICK_GRACE_SECONDS
        self._in_flight = self._poll_executor.submit(self.client.poll)
        try:
            # shield: a timeout must not cancel the bookkeeping future
            return await asyncio.wait_for(asyncio.shield(asyncio.wrap_future(self._in_flight)),
                                          timeout=tick_timeout)
        except asyncio.TimeoutError:
            return TransportError(message=f"Poll did not complete within {tick_timeout:g}s")
        except Exception as e:
            return TransportError(message=f"Poll failed: {e}")

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._stop.is_set():
            started = loop.time()
            try:
                await self.run_once()
            except DeviceWriteError as e:
                self.fatal_error = e
                log.critical(f"Relay write failed, stopping poll loop: {e}")
                if self.on_fatal:
                    self.on_fatal(e)
                return
            except ControllerClosedError:
                return
            except Exception as e:
                log.error(f"Error in polling task: {e}")

            delay = max(0.0, self.interval - (loop.time() - started))
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    async def shutdown(self) -> None:
        """Stop polling, drive the relay OFF and release resources (once)."""
        if self._stopped:
            return
        self._stopped = True
        if self._stop is not None:
            self._stop.set()
        if self._task is not None:
            # Let an in-flight tick complete rather than cancelling it
            await self._task
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._control_executor, self.controller.shutdown)
        finally:
            self._control_executor.shutdown(wait=False)
            # An abandoned request may still hold the poll worker; do not wait on it
            self._poll_executor.shutdown(wait=False)
            self.client.close()
            log.info("Poll loop shutdown complete")
