class WatcherError(Exception):
    """Base class for errors raised by the validator watcher."""


class FetchError(WatcherError):
    """The upstream validator list could not be fetched or parsed."""


class MalformedRecordError(WatcherError):
    """A validator record does not have the shape the selector expects."""


class InvalidAddressError(WatcherError):
    """A registration was attempted with a malformed operator address."""


class RegistryError(WatcherError):
    """The recipient registry file could not be read."""
