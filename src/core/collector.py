"""Collection loop for the virtualized missed-call list.

This module is integration-agnostic. It only relies on ports for the host
page, report delivery and status messages.

A run moves through Idle -> Collecting -> Finalizing -> Idle:
1) Locate the scroll container (fatal if absent)
2) Observe the rendered window and parse unseen identities
3) Ask the host to reveal more entries
4) Stop after N consecutive rounds with no recent entry and no scroll advance,
   when cancelled, or when the scroll container goes away mid-run
5) Observe once more, build the report and hand it to the sink
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from core.config import CollectorConfig, ReportConfig
from core.entry_parser import is_within_time_range, parse
from core.errors import CollectorBusy, EmptyReport, NoScrollableSurfaceFound
from core.models import OutcomeStatus, ReportRow
from core.ports import HostSurfacePort, ReportSinkPort, StatusFeedPort
from core.report import build_report
from core.session import CollectorSession, CollectorStatus

LOGGER = logging.getLogger(__name__)

NO_SURFACE_MESSAGE = "Could not find a scrollable container. Make sure the page has fully loaded."
EMPTY_REPORT_MESSAGE = "No missed call records found."


@dataclass(frozen=True)
class StopState:
    """Consecutive unproductive rounds seen so far."""

    unproductive_rounds: int = 0

    def done(self, threshold: int) -> bool:
        return self.unproductive_rounds >= threshold


def advance_stop_state(state: StopState, *, any_recent: bool, scroll_advanced: bool) -> StopState:
    """Return the stop state after one round.

    A round is unproductive when nothing in view is recent and the scroll
    position stayed put. Any productive round resets the counter.
    """

    if any_recent or scroll_advanced:
        return StopState()
    return StopState(state.unproductive_rounds + 1)


@dataclass(frozen=True)
class ObservationResult:
    observed: int
    new_records: int
    any_recent: bool
    missing: List[int] = field(default_factory=list)
    outcomes: Dict[OutcomeStatus, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RunResult:
    records_collected: int
    rows: List[ReportRow]
    artifact: Optional[str]
    cancelled: bool
    rounds: int


class MissedCallCollector:
    """Drives observation rounds and owns the collection session."""

    def __init__(
        self,
        surface: HostSurfacePort,
        sink: ReportSinkPort,
        status_feed: StatusFeedPort,
        config: CollectorConfig,
        report_config: ReportConfig,
        clock: Callable[[], datetime] = datetime.now,
        session: Optional[CollectorSession] = None,
    ) -> None:
        self._surface = surface
        self._sink = sink
        self._status_feed = status_feed
        self._config = config
        self._report_config = report_config
        self._clock = clock
        self._session = session or CollectorSession()
        self._cancelled = False

    @property
    def session(self) -> CollectorSession:
        return self._session

    @property
    def is_collecting(self) -> bool:
        return self._session.status is not CollectorStatus.IDLE

    def cancel(self) -> None:
        """Ask the loop to finish its current round and finalize."""

        if self.is_collecting:
            LOGGER.info("Cancellation requested")
            self._cancelled = True

    async def toggle(self) -> Optional[RunResult]:
        """Cancel a running collection, or start a fresh one."""

        if self.is_collecting:
            self.cancel()
            return None
        return await self.run()

    async def observe(self) -> ObservationResult:
        """Parse every unseen identity in the currently rendered window."""

        entries = await self._surface.snapshot()
        now = self._clock()
        ledger = self._session.ledger

        observed = {entry.identity for entry in entries}
        missing = ledger.missing_identities(observed)
        if missing:
            LOGGER.debug("Missing identities detected: %s", missing)

        outcomes: Counter = Counter()
        new_records = 0
        any_recent = False
        for entry in entries:
            if entry.timestamp is not None and is_within_time_range(entry.timestamp):
                any_recent = True
            if ledger.is_processed(entry.identity):
                continue

            outcome = parse(entry, now, self._config.missed_call_marker)
            # Every outcome retires the identity, rejections included.
            ledger.mark_processed(entry.identity)
            outcomes[outcome.status] += 1
            if outcome.record is None:
                continue
            self._session.records.append(outcome.record)
            new_records += 1
            LOGGER.info(
                "Added record %s at %s (identity %s)",
                outcome.record.phone_number,
                outcome.record.timestamp.isoformat(sep=" "),
                entry.identity,
            )

        LOGGER.debug(
            "Observed %s entries: processed=%s max_identity=%s outcomes=%s",
            len(entries),
            ledger.processed_count,
            ledger.max_identity_seen,
            dict(outcomes),
        )
        return ObservationResult(
            observed=len(entries),
            new_records=new_records,
            any_recent=any_recent,
            missing=missing,
            outcomes=dict(outcomes),
        )

    async def run(self) -> RunResult:
        """Run one full collection and deliver the report."""

        if self.is_collecting:
            raise CollectorBusy("A collection run is already in progress")

        self._session.reset()
        self._cancelled = False
        self._session.status = CollectorStatus.COLLECTING
        try:
            try:
                await self._surface.locate()
            except NoScrollableSurfaceFound:
                self._status_feed.publish(NO_SURFACE_MESSAGE)
                raise

            LOGGER.info("Collection started")
            rounds = await self._collect_rounds()

            cancelled = self._cancelled
            self._session.status = CollectorStatus.FINALIZING
            # A final pass catches anything revealed after the last check.
            await self.observe()
            rows, artifact = self._finalize()

            if self._config.reload_after_finish:
                await self._surface.reload()
        finally:
            self._session.status = CollectorStatus.IDLE
            self._cancelled = False

        return RunResult(
            records_collected=len(self._session.records),
            rows=rows,
            artifact=artifact,
            cancelled=cancelled,
            rounds=rounds,
        )

    async def _collect_rounds(self) -> int:
        threshold = self._config.stop_after_unproductive_rounds
        stop = StopState()
        rounds = 0
        while not self._cancelled:
            rounds += 1
            try:
                position_before = await self._surface.scroll_position()
                result = await self.observe()
                self._publish_progress()

                await self._surface.reveal_more()
                position_after = await self._surface.scroll_position()
            except NoScrollableSurfaceFound as exc:
                # Whatever was collected so far still gets reported.
                LOGGER.warning("Scroll container lost in round %s, finishing collection: %s", rounds, exc)
                break

            stop = advance_stop_state(
                stop,
                any_recent=result.any_recent,
                scroll_advanced=position_after > position_before,
            )
            if stop.done(threshold):
                LOGGER.info("No more scrolling possible and no recent records found, stopping collection")
                break
            await asyncio.sleep(self._config.load_delay_ms / 1000)
        return rounds

    def _finalize(self) -> tuple[List[ReportRow], Optional[str]]:
        rows = build_report(self._session.records, chronological=self._report_config.chronological_sort)
        if not rows:
            return self._announce_empty(rows)
        try:
            artifact = self._sink.write(rows, self._clock().date())
        except EmptyReport:
            return self._announce_empty(rows)

        LOGGER.info("Report written to %s (%s rows)", artifact, len(rows))
        self._status_feed.publish(
            f"Collection complete!\nCollected {len(self._session.records)} missed call records"
        )
        return rows, artifact

    def _announce_empty(self, rows: List[ReportRow]) -> tuple[List[ReportRow], None]:
        LOGGER.info("Collection finished without missed calls")
        self._status_feed.publish(EMPTY_REPORT_MESSAGE)
        return rows, None

    def _publish_progress(self) -> None:
        self._status_feed.publish(
            "Collecting missed calls...\n"
            f"Collected {len(self._session.records)} missed call records\n"
            f"Processed {self._session.ledger.processed_count} entries"
        )
