"""Exception types raised by the profdump engine and decoder."""
from __future__ import annotations


class ProfdumpError(Exception):
    """Base class for every error profdump raises on purpose."""


class DecodeError(ProfdumpError):
    """The payload cannot be interpreted as a dictionary-encoded profiles record.

    Fatal for the whole record: nothing of it is rendered.
    """

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class IndexOutOfRange(ProfdumpError):
    """A table index points past the end of its table.

    The record is malformed. The renderer recovers from this per profile.
    """

    def __init__(self, table: str, index: int, length: int) -> None:
        self.table = table
        self.index = index
        self.length = length
        super().__init__(
            f"{table} index {index} out of range (table has {length} entries)"
        )


class ConfigError(ProfdumpError):
    """A configuration file or value is malformed."""
