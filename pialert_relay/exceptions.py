class PiAlertRelayError(Exception):
    pass


class ConfigurationError(PiAlertRelayError):
    """Raised at startup when a required setting is missing or invalid."""
    pass


class DeviceWriteError(PiAlertRelayError):
    """The output device rejected a write; the physical relay state is unknown."""

    def __init__(self, message, state=None):
        super().__init__(message)
        self.state = state


class ControllerClosedError(PiAlertRelayError):
    pass
