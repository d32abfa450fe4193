"""Ports (interfaces) used by the collector.

Ports define the minimal contracts for the host page, report delivery and
status display so the core can be reused with different front ends.
"""

from __future__ import annotations

from datetime import date
from typing import List, Protocol, Sequence

from core.models import RawEntry, ReportRow


class EntrySourcePort(Protocol):
    """Read access to the currently rendered window of the list."""

    async def snapshot(self) -> List[RawEntry]:
        ...


class HostSurfacePort(EntrySourcePort, Protocol):
    """Scrollable host page that can reveal more entries."""

    async def locate(self) -> None:
        """Find the scroll container; raise NoScrollableSurfaceFound if absent."""
        ...

    async def reveal_more(self) -> None:
        ...

    async def scroll_position(self) -> float:
        ...

    async def reload(self) -> None:
        ...


class ReportSinkPort(Protocol):
    """Delivers a finished report and returns where it went."""

    def write(self, rows: Sequence[ReportRow], stamp: date) -> str:
        ...


class StatusFeedPort(Protocol):
    """Fire-and-forget progress messages for the user."""

    def publish(self, message: str) -> None:
        ...
