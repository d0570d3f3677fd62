"""Exceptions raised while dumping messages from a queue."""


class DumpError(Exception):
    """Base class for every dump failure."""


class ConfigurationError(DumpError):
    """Invalid run options, reported before any connection attempt."""


class BrokerConnectionError(DumpError):
    """Dialing the broker or opening a channel failed."""


class FetchError(DumpError):
    """The broker failed while fetching a message."""


class SerializationError(DumpError):
    """Message properties and headers could not be serialized to JSON."""


class SinkWriteError(DumpError):
    """A dump file could not be written."""


class StoreInitError(DumpError):
    """The dump database could not be opened or its table created."""


class StoreError(DumpError):
    """A message could not be inserted into the dump database."""
