"""Collection session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from core.ledger import DedupLedger
from core.models import CallRecord


class CollectorStatus(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    FINALIZING = "finalizing"


@dataclass
class CollectorSession:
    """Records, ledger and status of one collector.

    A session is mutated only by the collector that owns it. It is not safe
    for concurrent callers to mutate the ledger or records at the same time.
    """

    records: List[CallRecord] = field(default_factory=list)
    ledger: DedupLedger = field(default_factory=DedupLedger)
    status: CollectorStatus = CollectorStatus.IDLE

    def reset(self) -> None:
        self.records.clear()
        self.ledger.reset()
