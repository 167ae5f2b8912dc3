"""Exception types raised by the polling engine and hardware backends."""


class HwPollError(Exception):
    """Base class for hwpoll errors."""


class EngineInitError(HwPollError):
    """The hardware tree could not be opened; the engine is unusable."""


class EngineDisposedError(HwPollError):
    """An operation was attempted on an engine that has been disposed."""


class HardwareAccessError(HwPollError):
    """A hardware node failed to refresh or report its sensors."""
    
    def __init__(self, node_name: str, message: str):
        super().__init__(f"{node_name}: {message}")
        self.node_name = node_name
