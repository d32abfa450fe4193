"""Hourly missed-call report aggregation (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from core.models import CallRecord, ReportRow

CSV_HEADER = ("DateTime", "Phone Number", "Calls in Hour")


@dataclass
class _Bucket:
    representative: CallRecord
    calls_in_hour: int = 1


def hour_floor(timestamp: datetime) -> datetime:
    return timestamp.replace(minute=0, second=0, microsecond=0)


def format_report_datetime(timestamp: datetime) -> str:
    """Render ``M/D/YYYY h:MM am`` with a 12-hour clock and lowercase suffix."""

    hour = timestamp.hour
    suffix = "pm" if hour >= 12 else "am"
    hour12 = hour % 12 or 12
    return f"{timestamp.month}/{timestamp.day}/{timestamp.year} {hour12}:{timestamp.minute:02d} {suffix}"


def build_report(records: Iterable[CallRecord], chronological: bool = False) -> List[ReportRow]:
    """Fold accepted records into per-number hour buckets.

    Records are visited newest first, so the first record of a bucket is the
    most recent call of that hour and stays its representative.

    Rows are ordered by descending comparison of the rendered datetime text,
    which is not chronological across month/day digit boundaries ("9/1/..."
    sorts above "10/1/..."). Pass ``chronological=True`` to order by the
    representative timestamp instead.
    """

    newest_first = sorted(records, key=lambda record: record.timestamp, reverse=True)

    buckets: Dict[Tuple[str, datetime], _Bucket] = {}
    for record in newest_first:
        key = (record.phone_number, hour_floor(record.timestamp))
        bucket = buckets.get(key)
        if bucket is None:
            buckets[key] = _Bucket(representative=record)
        else:
            bucket.calls_in_hour += 1

    rows = [
        ReportRow(
            timestamp=bucket.representative.timestamp,
            datetime_text=format_report_datetime(bucket.representative.timestamp),
            phone_number=bucket.representative.phone_number,
            calls_in_hour=bucket.calls_in_hour,
        )
        for bucket in buckets.values()
    ]

    if chronological:
        return sorted(rows, key=lambda row: row.timestamp, reverse=True)
    return sorted(rows, key=lambda row: row.datetime_text, reverse=True)


def render_csv(rows: Sequence[ReportRow]) -> str:
    """Render the report as CSV text.

    Fields are joined without quoting; datetimes and canonical numbers never
    contain commas.
    """

    lines = [",".join(CSV_HEADER)]
    for row in rows:
        lines.append(",".join([row.datetime_text, row.phone_number, str(row.calls_in_hour)]))
    return "\n".join(lines)
