"""
Output devices driven by the relay controller.

 OutputDevice is the only seam between the controller and hardware:

    write(state)    # Drive the output to RelayState.ON / RelayState.OFF (idempotent)
    release()       # Free the underlying pin, called once at shutdown

 Variants
    GpioOutputDevice(pin, active_high)   # Raspberry Pi relay via gpiozero
    SimulatedOutputDevice()              # In-memory, records every write
"""
import abc
import logging
import threading
from typing import List, Optional

from gpiozero import OutputDevice as GpioZeroOutputDevice

from pialert_relay.exceptions import DeviceWriteError
from pialert_relay.models import RelayState

log = logging.getLogger(__name__)

DEFAULT_RELAY_PIN = 26


class OutputDevice:

    @abc.abstractmethod
    def write(self, state: RelayState) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def release(self) -> None:
        raise NotImplementedError


class GpioOutputDevice(OutputDevice):
    """Relay wired to a single BCM GPIO pin."""

    def __init__(self, pin: int = DEFAULT_RELAY_PIN, active_high: bool = True):
        self.pin = pin
        try:
            self.device: Optional[GpioZeroOutputDevice] = GpioZeroOutputDevice(
                pin, active_high=active_high, initial_value=False)
        except Exception as exc:
            raise DeviceWriteError(f"Unable to open GPIO pin {pin}: {exc}") from exc
        log.info(f"[GPIO] Initialized relay output on pin {pin}")

    def write(self, state: RelayState) -> None:
        if self.device is None:
            raise DeviceWriteError(f"GPIO pin {self.pin} already released", state)
        try:
            if state.is_on:
                self.device.on()
            else:
                self.device.off()
        except Exception as exc:
            raise DeviceWriteError(f"Failed to set GPIO pin {self.pin} {state.value}: {exc}", state) from exc
        log.debug(f"[GPIO] pin {self.pin} -> {state.value}")

    def release(self) -> None:
        if self.device is None:
            return
        try:
            self.device.close()
        finally:
            self.device = None
        log.info(f"[GPIO] Released pin {self.pin}")


class SimulatedOutputDevice(OutputDevice):
    """No hardware; keeps the current value and a log of writes."""

    def __init__(self, fail_writes: bool = False):
        self.value = RelayState.OFF
        self.writes: List[RelayState] = []
        self.release_count = 0
        self.fail_writes = fail_writes
        self._lock = threading.Lock()

    def write(self, state: RelayState) -> None:
        if self.fail_writes:
            raise DeviceWriteError(f"Simulated write failure ({state.value})", state)
        with self._lock:
            self.value = state
            self.writes.append(state)
        log.debug(f"[SIM] relay -> {state.value}")

    def release(self) -> None:
        with self._lock:
            self.release_count += 1

    @property
    def released(self) -> bool:
        return self.release_count > 0
