"""CSV report adapter.

Implements the core ReportSinkPort by writing the report into a dated CSV
file inside the configured output directory.
"""

from __future__ import annotations

import logging
import os
from datetime import date
from typing import Sequence

from core.errors import EmptyReport
from core.models import ReportRow
from core.report import render_csv

LOGGER = logging.getLogger(__name__)


def report_filename(stamp: date) -> str:
    """Return ``Missed_call_records_YYYYMMDD.csv`` for the given day."""

    return f"Missed_call_records_{stamp.strftime('%Y%m%d')}.csv"


class CsvReportSink:
    """Writes reports as CSV files; a later run on the same day overwrites."""

    def __init__(self, output_dir: str) -> None:
        self._output_dir = output_dir

    def write(self, rows: Sequence[ReportRow], stamp: date) -> str:
        if not rows:
            raise EmptyReport("No missed call records to write")

        os.makedirs(self._output_dir, exist_ok=True)
        path = os.path.join(self._output_dir, report_filename(stamp))
        # newline="" keeps the "\n" row separator on every platform.
        with open(path, "w", encoding="utf-8", newline="") as handle:
            handle.write(render_csv(rows))
        LOGGER.debug("Wrote %s report rows to %s", len(rows), path)
        return path
