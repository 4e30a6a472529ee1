import logging
import threading
from datetime import datetime
from typing import Optional

from pialert_relay.devices import OutputDevice
from pialert_relay.exceptions import ControllerClosedError, DeviceWriteError
from pialert_relay.history import PollHistory
from pialert_relay.models import (AlertSnapshot, ApiError, AuthFailed, ControllerSnapshot, OutcomeKind, PollOutcome,
                                  PollRecord, RateLimited, RelayState, Success, TransportError, utcnow)

log = logging.getLogger(__name__)


def describe_alert(snapshot: AlertSnapshot) -> str:
    if not snapshot.alert:
        return "All systems operational"
    targets = ", ".join(t.summary() for t in snapshot.failing_targets)
    return f"{snapshot.failing_count} target(s) down: {targets}"


class RelayController:
    """
    Owns the relay state and the output device.

    Every public mutator runs "decide, write device, commit state, record
    history" under one lock, so an automatic decision and a manual override
    can never interleave. The device is written before state is committed; if
    the write raises DeviceWriteError nothing is committed or recorded.

    Args:
        device          = OutputDevice exclusively owned by this controller
        history         = PollHistory receiving one record per call
        api_url         = Reported in snapshots
        poll_interval_ms = Reported in snapshots
    """

    def __init__(self, device: OutputDevice, history: PollHistory, api_url: str = "",
                 poll_interval_ms: int = 30000):
        self.device = device
        self.history = history
        self.api_url = api_url
        self.poll_interval_ms = poll_interval_ms
        self.relay_state = RelayState.OFF
        self.last_alert: Optional[AlertSnapshot] = None
        self.last_poll_time: Optional[datetime] = None
        self._lock = threading.Lock()
        self._closed = False

    def evaluate(self, outcome: PollOutcome) -> PollRecord:
        """Apply one classified poll outcome and return its history record."""
        with self._lock:
            self._check_open()
            if isinstance(outcome, Success):
                snapshot = outcome.snapshot
                target = RelayState.from_bool(snapshot.alert)
                self._write(target)
                self.last_alert = snapshot
                now = utcnow()
                self.last_poll_time = now
                record = PollRecord(timestamp=now, kind=OutcomeKind.SUCCESS, relay_state=target,
                                    detail=describe_alert(snapshot), status_code=outcome.status_code,
                                    alert=snapshot.alert)
                if snapshot.alert:
                    log.info(f"RELAY ON - {record.detail}")
                else:
                    log.info("RELAY OFF - All systems operational")
            elif isinstance(outcome, RateLimited):
                if outcome.retry_after:
                    detail = f"Rate limited ({outcome.retry_after}s)"
                else:
                    detail = "Rate limited (retry-after unknown)"
                log.warning(f"{detail} - relay unchanged")
                record = PollRecord(kind=OutcomeKind.RATE_LIMITED, detail=detail,
                                    status_code=outcome.status_code)
            elif isinstance(outcome, AuthFailed):
                log.error("Authentication failed (401). Check API key.")
                record = PollRecord(kind=OutcomeKind.AUTH_FAILED, detail="Auth failed (invalid key)",
                                    status_code=outcome.status_code)
            elif isinstance(outcome, ApiError):
                log.error(f"API error: {outcome.status_code}")
                record = PollRecord(kind=OutcomeKind.API_ERROR, detail=f"API error: {outcome.status_code}",
                                    status_code=outcome.status_code)
            elif isinstance(outcome, TransportError):
                # No evidence either way: fail safe to OFF, keep last_alert
                log.warning(f"Polling error: {outcome.message} - forcing relay OFF")
                self._write(RelayState.OFF)
                record = PollRecord(kind=OutcomeKind.TRANSPORT_ERROR, relay_state=RelayState.OFF,
                                    detail=outcome.message)
            else:
                raise TypeError(f"Unsupported poll outcome: {outcome!r}")
            self.history.append(record)
            return record

    def set_manual(self, on: bool) -> PollRecord:
        with self._lock:
            self._check_open()
            return self._manual(RelayState.from_bool(on))

    def toggle(self) -> PollRecord:
        with self._lock:
            self._check_open()
            return self._manual(self.relay_state.negate())

    def snapshot(self) -> ControllerSnapshot:
        with self._lock:
            return ControllerSnapshot(
                relay_state=self.relay_state,
                last_poll_time=self.last_poll_time,
                last_alert=self.last_alert,
                api_url=self.api_url,
                poll_interval_ms=self.poll_interval_ms,
            )

    @property
    def closed(self) -> bool:
        return self._closed

    def shutdown(self) -> None:
        """Force the relay OFF and release the device. Safe to call twice."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._write(RelayState.OFF)
            except DeviceWriteError as exc:
                log.error(f"Final OFF write failed during shutdown: {exc}")
                raise
            finally:
                self.device.release()
                log.info("Output device released")

    def _manual(self, target: RelayState) -> PollRecord:
        self._write(target)
        log.info(f"Manual override: Relay {target.value}")
        record = PollRecord(kind=OutcomeKind.MANUAL_OVERRIDE, relay_state=target,
                            detail=f"Manual override: Relay {target.value}")
        self.history.append(record)
        return record

    def _write(self, target: RelayState) -> None:
        try:
            self.device.write(target)
        except DeviceWriteError:
            log.critical(f"Output device write failed - relay may be in an unknown state (wanted {target.value})")
            raise
        except Exception as exc:
            log.critical(f"Output device write failed - relay may be in an unknown state (wanted {target.value})")
            raise DeviceWriteError(str(exc), target) from exc
        self.relay_state = target

    def _check_open(self) -> None:
        if self._closed:
            raise ControllerClosedError("Relay controller has been shut down")
