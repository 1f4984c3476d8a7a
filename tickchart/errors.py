"""Exceptions raised by tickchart."""


class TickchartError(Exception):
    """Base class for all tickchart errors."""
    pass


class StorageError(TickchartError):
    """Raised when the durable candle store cannot be read or written."""
    pass


class MalformedTickError(TickchartError):
    """Raised when a feed payload does not carry a usable tick."""
    pass
