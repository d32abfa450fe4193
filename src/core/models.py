"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any browser-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

MISSED_CALL_MARKER = "Missed call"


@dataclass(frozen=True)
class RawEntry:
    """One observed list entry, as read from the host surface.

    ``identity`` is the position the host list assigns to the entry. It stays
    stable while the entry scrolls in and out of the rendered window.
    """

    identity: int
    text: str
    sender: Optional[str]
    timestamp: Optional[str]

    def is_missed_call(self, marker: str = MISSED_CALL_MARKER) -> bool:
        return marker in self.text


@dataclass(frozen=True)
class CallRecord:
    """A missed call resolved to an absolute time and a canonical number."""

    timestamp: datetime
    phone_number: str
    source_identity: int


class OutcomeStatus(str, Enum):
    ACCEPTED = "accepted"
    NOT_MISSED_CALL = "not_missed_call"
    OUT_OF_WINDOW = "out_of_window"
    UNPARSEABLE = "unparseable"
    MISSING_FIELD = "missing_field"


@dataclass(frozen=True)
class ParseOutcome:
    """Result of parsing a single RawEntry."""

    status: OutcomeStatus
    record: Optional[CallRecord] = None
    detail: str = ""

    @property
    def accepted(self) -> bool:
        return self.status is OutcomeStatus.ACCEPTED


@dataclass(frozen=True)
class ReportRow:
    """One hour bucket of the missed-call report."""

    timestamp: datetime
    datetime_text: str
    phone_number: str
    calls_in_hour: int
