"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from core.models import MISSED_CALL_MARKER


@dataclass(frozen=True)
class CollectorConfig:
    """Round pacing and stop settings for the collection loop."""

    stop_after_unproductive_rounds: int = 3
    load_delay_ms: int = 500
    missed_call_marker: str = MISSED_CALL_MARKER
    reload_after_finish: bool = False


@dataclass(frozen=True)
class ReportConfig:
    """Report ordering and output location."""

    output_dir: str = "."
    chronological_sort: bool = False


@dataclass(frozen=True)
class SelectorConfig:
    """CSS selectors used to read the Compact View message queue."""

    card: str = '[data-testid="CommunicationsUI-Compact-View-Message-queue-card"]'
    sender: str = '[data-testid="CommunicationsUI-Compact-View-sender"]'
    timestamp: str = '[data-testid="CommunicationsUI-Compact-View-timestamp"]'
    identity_attribute: str = "data-index"
    scroll_containers: tuple[str, ...] = field(
        default=(
            ".infinite-scroll-component",
            '[role="grid"]',
            ".MuiBox-root > div",
            "main",
            "#root > div > div",
        )
    )


@dataclass(frozen=True)
class BrowserConfig:
    """How to reach the browser page that renders the message queue."""

    page_url: str = "https://kwickpos.nextos.com/apps/nextiva-connect"
    cdp_url: str = ""
    user_data_dir: str = ""
    headless: bool = False
    scroll_step_px: int = 500
    scroll_step_ratio: float = 0.6
    settle_delay_ms: int = 300
    ready_timeout_ms: int = 120000
