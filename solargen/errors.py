"""Exception types raised by the generator, the driver and the storage sinks."""


class SolarGenError(Exception):
    """Base class for all SolarGen errors."""


class InvalidConfiguration(SolarGenError, ValueError):
    """Raised when a capacity, interval, date range or window is not usable.

    Never coerced: the call that received the bad value fails.
    """


class SinkWriteFailure(SolarGenError, RuntimeError):
    """Raised when a storage sink rejects an insert."""
