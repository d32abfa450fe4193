"""Error taxonomy for the collector core."""

from __future__ import annotations


class CollectorError(Exception):
    """Base class for every error raised by callsweep."""


class UnparseableTimestamp(CollectorError):
    """Timestamp text did not match a recognized shape."""


class UnparseablePhoneNumber(CollectorError):
    """Sender text did not contain a NANP-shaped phone number."""


class MissingRequiredField(CollectorError):
    """An entry is missing its sender or timestamp element."""


class NoScrollableSurfaceFound(CollectorError):
    """The host page has no scrollable container to walk."""


class EmptyReport(CollectorError):
    """No qualifying records were collected."""


class CollectorBusy(CollectorError):
    """A collection run is already in progress."""
