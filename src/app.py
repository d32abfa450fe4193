"""Application entry point for the callsweep missed-call collector."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

import settings
from adapters.csv_report import CsvReportSink
from adapters.playwright_surface import open_surface
from adapters.status_feed import LoggingStatusFeed
from core.collector import MissedCallCollector
from core.errors import NoScrollableSurfaceFound

NAME = "CALLSWEEP"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _MaskingFormatter(logging.Formatter):
    """Replaces configured secret values with *** in every formatted line."""

    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _secret_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = {os.getenv(name) for name in redact_cfg.get("patterns", [])}
    # Longest first so a secret containing another is masked whole.
    return sorted((value for value in values if value), key=len, reverse=True)


def _configure_logging(verbose: bool = False, console: bool = True) -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False) and not verbose:
        return

    level_name = "DEBUG" if verbose else str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = _MaskingFormatter(
        _secret_values(config),
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    # The panel owns the terminal, so console output is only for plain runs.
    if console and (config.get("console", True) or verbose):
        handlers.append(logging.StreamHandler())

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/callsweep.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
                backupCount=int(file_cfg.get("backup_count", 5)),
                encoding="utf-8",
            )
        )

    if not handlers:
        return

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)


def _build_sink() -> CsvReportSink:
    return CsvReportSink(settings.REPORT.output_dir)


async def _collect_once() -> int:
    logger = logging.getLogger(__name__)
    feed = LoggingStatusFeed()

    async with open_surface(settings.BROWSER, settings.SELECTORS) as surface:
        collector = MissedCallCollector(
            surface=surface,
            sink=_build_sink(),
            status_feed=feed,
            config=settings.COLLECTOR,
            report_config=settings.REPORT,
        )

        # Ctrl+C stops scrolling and still writes what was collected.
        loop = asyncio.get_running_loop()
        handles_sigint = True
        try:
            loop.add_signal_handler(signal.SIGINT, collector.cancel)
        except NotImplementedError:
            handles_sigint = False
            logger.debug("Signal handlers unavailable; Ctrl+C aborts without a report")

        try:
            result = await collector.run()
        except NoScrollableSurfaceFound:
            logger.error("Collection not started: no scrollable container found")
            return 1
        finally:
            if handles_sigint:
                loop.remove_signal_handler(signal.SIGINT)

    logger.info(
        "Collection finished: rounds=%s, records=%s, rows=%s, cancelled=%s",
        result.rounds,
        result.records_collected,
        len(result.rows),
        result.cancelled,
    )
    if result.artifact:
        print(result.artifact)
    return 0


def _collect() -> int:
    _print_banner()
    logging.getLogger(__name__).info("Starting callsweep")
    return asyncio.run(_collect_once())


def _ui() -> int:
    _print_banner()
    from frontend.app import CollectorPanelApp

    CollectorPanelApp(
        surface_factory=lambda: open_surface(settings.BROWSER, settings.SELECTORS),
        sink=_build_sink(),
        collector_config=settings.COLLECTOR,
        report_config=settings.REPORT,
        page_url=settings.BROWSER.page_url,
    ).run()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="callsweep")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("collect", help="Collect missed calls once and write the CSV report")
    subparsers.add_parser("ui", help="Launch the collector panel with a start/stop toggle")

    args = parser.parse_args(argv)
    _configure_logging(verbose=args.verbose, console=args.command != "ui")
    if args.command == "ui":
        return _ui()
    return _collect()


if __name__ == "__main__":
    sys.exit(main())
