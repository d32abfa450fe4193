"""Missed-call entry parsing (core domain).

Parsing is a pure function of the raw entry and the caller-supplied "now".
Rejections are returned as outcomes rather than raised so a single bad entry
never aborts a collection run.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from core.errors import MissingRequiredField, UnparseablePhoneNumber, UnparseableTimestamp
from core.models import MISSED_CALL_MARKER, CallRecord, OutcomeStatus, ParseOutcome, RawEntry

LOGGER = logging.getLogger(__name__)

_TIME_ONLY = re.compile(r"^(\d{1,2}):(\d{2})\s*([AP]M)?", re.IGNORECASE)
_YESTERDAY = re.compile(r"Yesterday\s*(\d{1,2}):(\d{2})(?:\s*([AP]M))?", re.IGNORECASE)
_RECENT_YESTERDAY = re.compile(r"^Yesterday", re.IGNORECASE)
_PHONE = re.compile(r"\+?1?\s*\(?(\d{3})\)?[-.\s]?(\d{3})[-.\s]?(\d{4})")


def is_within_time_range(timestamp_text: str) -> bool:
    """Return True when the host rendered the time in a recent shape.

    Recency is judged by shape only: a bare clock time means today and a
    ``Yesterday`` prefix means yesterday. Absolute dates are out of range.
    """

    text = timestamp_text.strip()
    return bool(_TIME_ONLY.match(text) or _RECENT_YESTERDAY.match(text))


def _to_24_hour(hour: int, period: Optional[str]) -> int:
    if not period:
        return hour
    period = period.upper()
    if period == "PM" and hour != 12:
        return hour + 12
    if period == "AM" and hour == 12:
        return 0
    return hour


def _at_clock_time(day: datetime, match: re.Match) -> datetime:
    hour = _to_24_hour(int(match.group(1)), match.group(3))
    minute = int(match.group(2))
    try:
        return day.replace(hour=hour, minute=minute, second=0, microsecond=0)
    except ValueError as exc:
        raise UnparseableTimestamp(f"Invalid clock time: {match.group(0)!r}") from exc


def parse_timestamp(timestamp_text: str, now: datetime) -> datetime:
    """Resolve a time-only or ``Yesterday H:MM`` text against ``now``."""

    text = timestamp_text.strip()
    match = _TIME_ONLY.match(text)
    if match:
        return _at_clock_time(now, match)

    match = _YESTERDAY.search(text)
    if match:
        return _at_clock_time(now - timedelta(days=1), match)

    raise UnparseableTimestamp(f"Date text does not match expected patterns: {text!r}")


def extract_phone_number(sender_text: str) -> str:
    """Return the sender's number in canonical ``(AAA)EEE-LLLL`` form."""

    match = _PHONE.search(sender_text.strip())
    if not match:
        raise UnparseablePhoneNumber(f"No phone number in sender: {sender_text.strip()!r}")
    area, exchange, line = match.groups()
    return f"({area}){exchange}-{line}"


def _require(value: Optional[str], name: str) -> str:
    if value is None:
        raise MissingRequiredField(f"Entry has no {name} element")
    return value


def parse(raw: RawEntry, now: datetime, marker: str = MISSED_CALL_MARKER) -> ParseOutcome:
    """Turn one observed entry into a CallRecord or a rejection.

    Check order:
    - entries without the missed-call marker are rejected first
    - the timestamp must be present and rendered in a recent shape
    - the sender must hold a phone number
    - the timestamp must resolve to a valid clock time
    """

    if not raw.is_missed_call(marker):
        return ParseOutcome(OutcomeStatus.NOT_MISSED_CALL)

    try:
        timestamp_text = _require(raw.timestamp, "timestamp")
        if not is_within_time_range(timestamp_text):
            return ParseOutcome(OutcomeStatus.OUT_OF_WINDOW, detail=timestamp_text.strip())
        sender_text = _require(raw.sender, "sender")
        phone_number = extract_phone_number(sender_text)
        timestamp = parse_timestamp(timestamp_text, now)
    except MissingRequiredField as exc:
        LOGGER.debug("Entry %s skipped: %s", raw.identity, exc)
        return ParseOutcome(OutcomeStatus.MISSING_FIELD, detail=str(exc))
    except (UnparseablePhoneNumber, UnparseableTimestamp) as exc:
        LOGGER.debug("Entry %s skipped: %s", raw.identity, exc)
        return ParseOutcome(OutcomeStatus.UNPARSEABLE, detail=str(exc))

    record = CallRecord(
        timestamp=timestamp,
        phone_number=phone_number,
        source_identity=raw.identity,
    )
    return ParseOutcome(OutcomeStatus.ACCEPTED, record=record)
