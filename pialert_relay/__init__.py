# PiAlert Relay Module
# -*- coding: utf-8 -*-
"""
 Python module to drive a relay from PiAlert monitoring alerts

 Features
    * Polls the PiAlert alert-status API on a fixed interval (x-api-key auth)
    * Turns the relay ON while any monitored target is failing, OFF otherwise
    * Fails safe: network errors force the relay OFF, auth/rate-limit errors freeze it
    * Keeps a bounded in-memory history of polls and manual actions
    * Manual override (on/off/toggle) through a FastAPI control surface
    * Runs against a real GPIO pin (gpiozero) or a simulated relay

 Classes
    AlertClient(url, api_key, timeout)
    PollHistory(capacity)
    RelayController(device, history, api_url, poll_interval_ms)
    PollLoop(client, controller, interval, on_fatal)
    GpioOutputDevice(pin, active_high)
    SimulatedOutputDevice()

 Functions
    set_debug(toggle, color)  # Enable verbose logging

 Requirements
    This module requires the following modules: requests, pydantic, pydantic-settings,
    fastapi, uvicorn, gpiozero, python-dotenv
"""
import logging
import sys

version_tuple = (0, 1, 0)
version = __version__ = '%d.%d.%d' % version_tuple
__author__ = 'pialert'

from pialert_relay.client import AlertClient
from pialert_relay.controller import RelayController
from pialert_relay.devices import GpioOutputDevice, OutputDevice, SimulatedOutputDevice
from pialert_relay.exceptions import ConfigurationError, ControllerClosedError, DeviceWriteError, PiAlertRelayError
from pialert_relay.history import PollHistory
from pialert_relay.models import (AlertSnapshot, ApiError, AuthFailed, ControllerSnapshot, FailingTarget, OutcomeKind,
                                  PollRecord, RateLimited, RelayState, Success, TransportError)
from pialert_relay.poll_loop import PollLoop

log = logging.getLogger(__name__)
log.debug('%s version %s', __name__, __version__)
log.debug('Python %s on %s', sys.version, sys.platform)


def set_debug(toggle=True, color=True):
    """Enable verbose logging"""
    if toggle:
        if color:
            logging.basicConfig(format='\x1b[31;1m%(levelname)s:%(message)s\x1b[0m', level=logging.DEBUG)
        else:
            logging.basicConfig(format='%(levelname)s:%(message)s', level=logging.DEBUG)
        log.setLevel(logging.DEBUG)
        log.debug("%s [%s]\n" % (__name__, __version__))
    else:
        log.setLevel(logging.NOTSET)
