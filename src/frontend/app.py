"""Main Textual app for the callsweep collector panel."""

from __future__ import annotations

import asyncio
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Sequence

from playwright.async_api import Error as PlaywrightError
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Footer, Static

from core.collector import MissedCallCollector
from core.config import CollectorConfig, ReportConfig
from core.errors import NoScrollableSurfaceFound
from core.models import ReportRow
from core.ports import HostSurfacePort, ReportSinkPort

from .constants import BUTTON_IDLE, BUTTON_RUNNING, BUTTON_STOPPING, NEXTIVA_BLUE
from .state import PanelState

SurfaceFactory = Callable[[], AbstractAsyncContextManager[HostSurfacePort]]


class WidgetStatusFeed:
    """StatusFeedPort that mirrors messages into a Static widget."""

    def __init__(self, app: "CollectorPanelApp") -> None:
        self._app = app

    def publish(self, message: str) -> None:
        self._app.show_status(message)


class CollectorPanelApp(App):
    """Start/stop toggle, live status and the last report."""

    CSS = """
    Screen {
        background: #0f1a21;
        color: #e8eef5;
    }

    #header {
        height: 7;
        padding: 1 4;
        border-bottom: solid #2a3a46;
    }

    #title {
        text-style: bold;
    }

    .subtle {
        color: #c6d2dd;
    }

    #actions {
        height: 3;
        padding: 0 4;
        margin-top: 1;
    }

    #status {
        height: 5;
        padding: 1 4;
        color: #c6d2dd;
    }

    #status.status-error {
        color: #e06c75;
    }

    #report-table {
        height: 1fr;
        margin: 0 4;
    }
    """

    BINDINGS = [
        ("c", "toggle", "Collect / Stop"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        surface_factory: SurfaceFactory,
        sink: ReportSinkPort,
        collector_config: CollectorConfig,
        report_config: ReportConfig,
        page_url: str,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._surface_factory = surface_factory
        self._sink = sink
        self._collector_config = collector_config
        self._report_config = report_config
        self._page_url = page_url
        self._collector: MissedCallCollector | None = None
        self._closing = asyncio.Event()
        self.panel_state = PanelState()

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Vertical():
                yield Static(self._title_text(), id="title")
                yield Static(f"page: {self._page_url}", classes="subtle")
                yield Static(f"reports: {self._report_config.output_dir}", classes="subtle")
                yield Static(self.panel_state.last_report_label(), id="last-report", classes="subtle")
        with Horizontal(id="actions"):
            yield Button(BUTTON_IDLE, id="toggle-btn", variant="primary", disabled=True)
        yield Static("Connecting to browser...", id="status")
        yield DataTable(id="report-table", cursor_type="row")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#report-table", DataTable)
        table.add_column("DateTime", key="datetime", width=22)
        table.add_column("Phone Number", key="phone", width=16)
        table.add_column("Calls in Hour", key="calls", width=14)
        table.zebra_stripes = True
        self.run_worker(self._hold_surface(), group="surface")

    async def on_unmount(self) -> None:
        self._closing.set()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "toggle-btn":
            self.action_toggle()

    def action_toggle(self) -> None:
        if self._collector is None:
            return
        self.run_worker(self._toggle(self._collector), group="collect")

    async def _hold_surface(self) -> None:
        # The browser stays attached for the lifetime of the panel.
        try:
            async with self._surface_factory() as surface:
                self._collector = MissedCallCollector(
                    surface=surface,
                    sink=self._sink,
                    status_feed=WidgetStatusFeed(self),
                    config=self._collector_config,
                    report_config=self._report_config,
                )
                self.show_status("Browser connected. Press c to collect missed calls.")
                self._set_button(BUTTON_IDLE, disabled=False)
                await self._closing.wait()
        except PlaywrightError as exc:
            self.show_status(f"Browser error: {exc}", error=True)
        finally:
            self._collector = None

    async def _toggle(self, collector: MissedCallCollector) -> None:
        if collector.is_collecting:
            self._set_button(BUTTON_STOPPING, disabled=True)
            await collector.toggle()
            return

        self._set_button(BUTTON_RUNNING, disabled=False)
        try:
            result = await collector.toggle()
        except NoScrollableSurfaceFound:
            result = None
        except PlaywrightError as exc:
            result = None
            self.show_status(f"Browser error: {exc}", error=True)
        finally:
            self._set_button(BUTTON_IDLE, disabled=False)

        if result is not None:
            if result.artifact:
                self.panel_state.last_artifact = result.artifact
                self.query_one("#last-report", Static).update(self.panel_state.last_report_label())
            self._show_rows(result.rows)

    def show_status(self, message: str, error: bool = False) -> None:
        status = self.query_one("#status", Static)
        status.set_class(error, "status-error")
        status.update(message)

    def _set_button(self, label: str, disabled: bool) -> None:
        button = self.query_one("#toggle-btn", Button)
        button.label = label
        button.disabled = disabled

    def _show_rows(self, rows: Sequence[ReportRow]) -> None:
        table = self.query_one("#report-table", DataTable)
        table.clear()
        for row in rows:
            table.add_row(row.datetime_text, row.phone_number, str(row.calls_in_hour))

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("CALL", NEXTIVA_BLUE),
            ("SWEEP > Missed Call Collector", "bold"),
        )
