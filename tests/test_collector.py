from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import List, Optional, Sequence

import pytest

from core.collector import (
    EMPTY_REPORT_MESSAGE,
    NO_SURFACE_MESSAGE,
    MissedCallCollector,
    StopState,
    advance_stop_state,
)
from core.config import CollectorConfig, ReportConfig
from core.errors import CollectorBusy, EmptyReport, NoScrollableSurfaceFound
from core.models import OutcomeStatus, RawEntry, ReportRow
from core.session import CollectorSession, CollectorStatus

NOW = datetime(2024, 5, 10, 18, 0)
CONFIG = CollectorConfig(stop_after_unproductive_rounds=3, load_delay_ms=0)


def _missed(identity: int, timestamp: str, sender: Optional[str] = "(555) 123-4567") -> RawEntry:
    return RawEntry(identity=identity, text=f"Missed call {timestamp}", sender=sender, timestamp=timestamp)


def _call_log() -> List[RawEntry]:
    entries = [
        _missed(0, "2:15 PM", "+1 (555) 123-4567"),
        RawEntry(identity=1, text="Incoming call", sender="(555) 000-1111", timestamp="2:10 PM"),
        _missed(2, "1:40 PM", "(555) 123-4567"),
        _missed(3, "2:05 PM", "555-123-4567"),
        _missed(4, "Yesterday 9:05 AM", "555.987.6543"),
        _missed(5, "11:00 AM", "Unknown caller"),
    ]
    entries += [_missed(identity, "3/1/2024 10:00 AM") for identity in range(6, 12)]
    return entries


class FakeSurface:
    """Virtualized list: only ``window`` entries are rendered at a time."""

    def __init__(
        self,
        entries: List[RawEntry],
        window: int = 4,
        step: int = 2,
        reorder: bool = False,
        locatable: bool = True,
        locate_error: Optional[Exception] = None,
        lost_after_reveals: Optional[int] = None,
    ) -> None:
        self.entries = entries
        self.window = window
        self.step = step
        self.reorder = reorder
        self.locatable = locatable
        self.locate_error = locate_error
        self.lost_after_reveals = lost_after_reveals
        self.position = 0
        self.snapshots = 0
        self.reveals = 0
        self.reloads = 0
        self.on_reveal = None

    async def locate(self) -> None:
        if self.locate_error is not None:
            raise self.locate_error
        if not self.locatable:
            raise NoScrollableSurfaceFound("no container")

    async def snapshot(self) -> List[RawEntry]:
        self.snapshots += 1
        rendered = self.entries[self.position : self.position + self.window]
        if self.reorder and self.snapshots % 2 == 0:
            rendered = list(reversed(rendered))
        return list(rendered)

    async def reveal_more(self) -> None:
        self.reveals += 1
        last_start = max(len(self.entries) - self.window, 0)
        self.position = min(self.position + self.step, last_start)
        if self.on_reveal is not None:
            self.on_reveal()

    async def scroll_position(self) -> float:
        if self.lost_after_reveals is not None and self.reveals >= self.lost_after_reveals:
            raise NoScrollableSurfaceFound("container detached")
        return float(self.position)

    async def reload(self) -> None:
        self.reloads += 1


class FakeSink:
    def __init__(self) -> None:
        self.written: list[tuple[list[ReportRow], date]] = []

    def write(self, rows: Sequence[ReportRow], stamp: date) -> str:
        if not rows:
            raise EmptyReport("nothing to write")
        self.written.append((list(rows), stamp))
        return "reports/Missed_call_records_20240510.csv"


class FakeFeed:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def publish(self, message: str) -> None:
        self.messages.append(message)


def _collector(
    surface: FakeSurface,
    *,
    config: CollectorConfig = CONFIG,
    report_config: ReportConfig = ReportConfig(),
    session: Optional[CollectorSession] = None,
) -> tuple[MissedCallCollector, FakeSink, FakeFeed]:
    sink = FakeSink()
    feed = FakeFeed()
    collector = MissedCallCollector(
        surface=surface,
        sink=sink,
        status_feed=feed,
        config=config,
        report_config=report_config,
        clock=lambda: NOW,
        session=session,
    )
    return collector, sink, feed


def test_stop_state_counts_only_unproductive_rounds() -> None:
    state = StopState()
    state = advance_stop_state(state, any_recent=False, scroll_advanced=False)
    state = advance_stop_state(state, any_recent=False, scroll_advanced=False)
    assert state.unproductive_rounds == 2
    assert not state.done(3)

    assert advance_stop_state(state, any_recent=True, scroll_advanced=False) == StopState()
    assert advance_stop_state(state, any_recent=False, scroll_advanced=True) == StopState()

    state = advance_stop_state(state, any_recent=False, scroll_advanced=False)
    assert state.done(3)


def test_full_run_collects_each_entry_once() -> None:
    surface = FakeSurface(_call_log(), reorder=True)
    collector, sink, feed = _collector(surface)

    result = asyncio.run(collector.run())

    # Four scrolling rounds, then three rounds stuck at the end of the list.
    assert result.rounds == 7
    assert not result.cancelled
    assert result.records_collected == 4
    assert result.artifact == "reports/Missed_call_records_20240510.csv"

    identities = [record.source_identity for record in collector.session.records]
    assert sorted(identities) == [0, 2, 3, 4]
    assert collector.session.ledger.processed_count == 12
    assert collector.session.status is CollectorStatus.IDLE

    rows, stamp = sink.written[0]
    assert stamp == date(2024, 5, 10)
    assert [(row.datetime_text, row.phone_number, row.calls_in_hour) for row in rows] == [
        ("5/9/2024 9:05 am", "(555)987-6543", 1),
        ("5/10/2024 2:15 pm", "(555)123-4567", 2),
        ("5/10/2024 1:40 pm", "(555)123-4567", 1),
    ]
    assert feed.messages[0].startswith("Collecting missed calls...")
    assert feed.messages[-1] == "Collection complete!\nCollected 4 missed call records"


def test_repeated_observation_is_idempotent() -> None:
    surface = FakeSurface(_call_log(), window=6)
    collector, _, _ = _collector(surface)

    first = asyncio.run(collector.observe())
    second = asyncio.run(collector.observe())

    assert first.new_records == 4
    assert first.outcomes == {
        OutcomeStatus.ACCEPTED: 4,
        OutcomeStatus.NOT_MISSED_CALL: 1,
        OutcomeStatus.UNPARSEABLE: 1,
    }
    assert second.new_records == 0
    assert second.outcomes == {}
    assert second.any_recent
    assert len(collector.session.records) == first.new_records


def test_observe_reports_skipped_identities() -> None:
    entries = _call_log()
    surface = FakeSurface(entries, window=2)
    collector, _, _ = _collector(surface)

    asyncio.run(collector.observe())
    surface.position = 6
    result = asyncio.run(collector.observe())
    assert result.missing == []

    surface.position = 9
    result = asyncio.run(collector.observe())
    assert result.missing == [2, 3, 4, 5]
    assert not result.any_recent


def test_cancel_finalizes_with_collected_records() -> None:
    surface = FakeSurface(_call_log())
    collector, sink, _ = _collector(surface)
    surface.on_reveal = collector.cancel

    result = asyncio.run(collector.run())

    assert result.cancelled
    assert result.rounds == 1
    # Round one saw 0-3; the final pass after the scroll also saw 2-5.
    assert sorted(record.source_identity for record in collector.session.records) == [0, 2, 3, 4]
    assert len(sink.written) == 1
    assert collector.session.status is CollectorStatus.IDLE


def test_toggle_starts_then_cancels() -> None:
    surface = FakeSurface(_call_log())
    collector, _, _ = _collector(surface)
    toggles: list[object] = []

    async def _toggle_during_reveal() -> None:
        toggles.append(await collector.toggle())

    def _on_reveal() -> None:
        asyncio.get_running_loop().create_task(_toggle_during_reveal())

    surface.on_reveal = _on_reveal

    async def _run():
        result = await collector.toggle()
        await asyncio.sleep(0)
        return result

    result = asyncio.run(_run())

    assert result is not None
    assert result.cancelled
    assert toggles[0] is None


def test_missing_scroll_container_halts_in_idle() -> None:
    surface = FakeSurface(_call_log(), locatable=False)
    collector, sink, feed = _collector(surface)

    with pytest.raises(NoScrollableSurfaceFound):
        asyncio.run(collector.run())

    assert collector.session.status is CollectorStatus.IDLE
    assert feed.messages == [NO_SURFACE_MESSAGE]
    assert surface.snapshots == 0
    assert not sink.written


def test_empty_report_is_announced_instead_of_written() -> None:
    entries = [
        RawEntry(identity=i, text="Incoming call", sender="(555) 000-1111", timestamp="3/1/2024 9:00 AM")
        for i in range(5)
    ]
    surface = FakeSurface(entries, window=5)
    collector, sink, feed = _collector(surface)

    result = asyncio.run(collector.run())

    assert result.artifact is None
    assert result.rows == []
    assert result.rounds == 3
    assert not sink.written
    assert feed.messages[-1] == EMPTY_REPORT_MESSAGE


def test_new_run_starts_from_a_clean_session() -> None:
    surface = FakeSurface(_call_log())
    collector, _, _ = _collector(surface)

    asyncio.run(collector.run())
    surface.position = 0
    second = asyncio.run(collector.run())

    assert second.records_collected == 4
    assert len(collector.session.records) == 4


def test_run_while_collecting_is_rejected() -> None:
    session = CollectorSession(status=CollectorStatus.COLLECTING)
    collector, _, _ = _collector(FakeSurface(_call_log()), session=session)

    with pytest.raises(CollectorBusy):
        asyncio.run(collector.run())


def test_reload_after_finish() -> None:
    surface = FakeSurface(_call_log())
    config = CollectorConfig(load_delay_ms=0, reload_after_finish=True)
    collector, _, _ = _collector(surface, config=config)

    asyncio.run(collector.run())

    assert surface.reloads == 1


def test_chronological_report_config() -> None:
    surface = FakeSurface(_call_log())
    collector, sink, _ = _collector(surface, report_config=ReportConfig(chronological_sort=True))

    asyncio.run(collector.run())

    rows, _ = sink.written[0]
    assert [row.datetime_text for row in rows] == [
        "5/10/2024 2:15 pm",
        "5/10/2024 1:40 pm",
        "5/9/2024 9:05 am",
    ]


def test_failed_locate_returns_to_idle_so_toggle_can_start_again() -> None:
    surface = FakeSurface(_call_log(), locate_error=RuntimeError("Execution context was destroyed"))
    collector, sink, _ = _collector(surface)

    with pytest.raises(RuntimeError):
        asyncio.run(collector.toggle())
    assert collector.session.status is CollectorStatus.IDLE

    surface.locate_error = None
    result = asyncio.run(collector.toggle())

    assert result is not None
    assert result.records_collected == 4
    assert len(sink.written) == 1


def test_lost_scroll_container_still_reports_collected_records() -> None:
    surface = FakeSurface(_call_log(), lost_after_reveals=2)
    collector, sink, feed = _collector(surface)

    result = asyncio.run(collector.run())

    assert result.rounds == 2
    assert result.records_collected == 4
    assert result.artifact == "reports/Missed_call_records_20240510.csv"
    assert len(sink.written) == 1
    assert NO_SURFACE_MESSAGE not in feed.messages
    assert collector.session.status is CollectorStatus.IDLE


class AcceptingSink:
    def __init__(self) -> None:
        self.written: list[Sequence[ReportRow]] = []

    def write(self, rows: Sequence[ReportRow], stamp: date) -> str:
        self.written.append(rows)
        return "reports/empty.csv"


def test_empty_report_is_not_handed_to_a_permissive_sink() -> None:
    entries = [
        RawEntry(identity=i, text="Incoming call", sender=None, timestamp="3/1/2024 9:00 AM")
        for i in range(3)
    ]
    sink = AcceptingSink()
    feed = FakeFeed()
    collector = MissedCallCollector(
        surface=FakeSurface(entries),
        sink=sink,
        status_feed=feed,
        config=CONFIG,
        report_config=ReportConfig(),
        clock=lambda: NOW,
    )

    result = asyncio.run(collector.run())

    assert result.artifact is None
    assert sink.written == []
    assert feed.messages[-1] == EMPTY_REPORT_MESSAGE
