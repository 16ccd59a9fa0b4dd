class JournalError(Exception):
    """Base class for every error raised by the journal."""


class InvalidMessage(JournalError, TypeError):
    """Raised when a message is built with a payload that is not a mapping."""


class PathNotFound(JournalError, KeyError):
    """Raised when a dotted payload path cannot be resolved and no default is given."""

    def __init__(self, path: str, segment: str):
        super().__init__(path)
        self.path = path
        self.segment = segment

    def __str__(self) -> str:
        return f"payload path '{self.path}' not found (missing segment '{self.segment}')"


class InvalidSubscription(JournalError, ValueError):
    """Raised when a subscription is registered without a callable callback."""


class InvalidQuery(JournalError, ValueError):
    """Raised when a query configuration has unknown keys or badly typed values."""
