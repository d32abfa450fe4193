"""State container for the collector panel."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PanelState:
    last_artifact: str | None = None

    def last_report_label(self) -> str:
        return f"last report: {self.last_artifact or 'none yet'}"
