"""Exception hierarchy for sortr."""


class SortrError(Exception):
    """Base exception for all sortr errors."""


class UnknownItemError(SortrError, KeyError):
    """Raised when an operation names an item id the session does not hold."""


class PersistenceError(SortrError):
    """Raised when a persistence backend operation fails."""


class ProgressDecodeError(SortrError):
    """Saved progress could not be decoded into engine state."""

    def __init__(self, message: str, raw_payload: str = "") -> None:
        super().__init__(message)
        self.raw_payload = raw_payload
