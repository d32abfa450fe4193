"""Static configuration for callsweep.

All user-editable settings (browser, collector pacing, selectors, report,
logging) live in a single JSON file for quick edits without touching Python.
Connection details can be overridden from the environment or a .env file.
"""

import json
import os

from dotenv import load_dotenv

from core.config import BrowserConfig, CollectorConfig, ReportConfig, SelectorConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

load_dotenv()


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if not path or os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


def _build_browser(raw: dict) -> BrowserConfig:
    defaults = BrowserConfig()
    return BrowserConfig(
        page_url=os.getenv("CALLSWEEP_PAGE_URL") or raw.get("page_url", defaults.page_url),
        # The CDP endpoint may carry a token, so the environment wins over the file.
        cdp_url=os.getenv("CALLSWEEP_CDP_URL") or raw.get("cdp_url", defaults.cdp_url),
        user_data_dir=_resolve_path(raw.get("user_data_dir", defaults.user_data_dir)),
        headless=bool(raw.get("headless", defaults.headless)),
        scroll_step_px=int(raw.get("scroll_step_px", defaults.scroll_step_px)),
        scroll_step_ratio=float(raw.get("scroll_step_ratio", defaults.scroll_step_ratio)),
        settle_delay_ms=int(raw.get("settle_delay_ms", defaults.settle_delay_ms)),
        ready_timeout_ms=int(raw.get("ready_timeout_ms", defaults.ready_timeout_ms)),
    )


def _build_selectors(raw: dict) -> SelectorConfig:
    defaults = SelectorConfig()
    return SelectorConfig(
        card=raw.get("card", defaults.card),
        sender=raw.get("sender", defaults.sender),
        timestamp=raw.get("timestamp", defaults.timestamp),
        identity_attribute=raw.get("identity_attribute", defaults.identity_attribute),
        scroll_containers=tuple(raw.get("scroll_containers", defaults.scroll_containers)),
    )


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

BROWSER = _build_browser(_CONFIG.get("browser", {}))
SELECTORS = _build_selectors(_CONFIG.get("selectors", {}))

# Round pacing and the stop rule.
# - stop_after_unproductive_rounds: rounds with nothing recent in view and no
#   scroll progress before giving up
# - load_delay_ms: wait after each scroll for new rows to render
_collector = _CONFIG.get("collector", {})
COLLECTOR = CollectorConfig(
    stop_after_unproductive_rounds=int(_collector.get("stop_after_unproductive_rounds", 3)),
    load_delay_ms=int(_collector.get("load_delay_ms", 500)),
    missed_call_marker=_collector.get("missed_call_marker", CollectorConfig.missed_call_marker),
    reload_after_finish=bool(_collector.get("reload_after_finish", False)),
)

# chronological_sort=true orders rows by time instead of by datetime text.
_report = _CONFIG.get("report", {})
REPORT = ReportConfig(
    output_dir=_resolve_path(_report.get("output_dir", "reports")),
    chronological_sort=bool(_report.get("chronological_sort", False)),
)

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
