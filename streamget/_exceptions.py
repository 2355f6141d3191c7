"""
Errors raised by streamget, one class per stage of the exchange.

Every error is raised ``from`` the exception that caused it, so the
original transport or I/O failure stays reachable as ``__cause__``::

    StreamGetError
    ├── InputError
    ├── RequestConstructionError
    ├── TransportError
    ├── DecodingError
    └── BodyIOError
        ├── BodyReadError
        └── BodyWriteError
"""

from __future__ import annotations


class StreamGetError(Exception):
    """Base class for all errors reported by the command line entry point."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(StreamGetError):
    """The URL argument is missing, empty or malformed."""


class RequestConstructionError(StreamGetError):
    """The outgoing request could not be built."""


class TransportError(StreamGetError):
    """The request could not be sent or no response was received."""


class DecodingError(StreamGetError):
    """The body is declared gzip but the gzip reader could not be set up."""


class BodyIOError(StreamGetError):
    pass


class BodyReadError(BodyIOError):
    pass


class BodyWriteError(BodyIOError):
    pass


def describe(exc: BaseException) -> str:
    # Some transport errors carry an empty message.
    return str(exc) or type(exc).__name__
