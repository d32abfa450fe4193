"""Playwright host surface adapter.

Reads the Nextiva Connect Compact View message queue from a Chromium page
and scrolls it. This keeps all browser details out of the core collector.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from playwright.async_api import Browser, Error as PlaywrightError, Page, async_playwright

from core.config import BrowserConfig, SelectorConfig
from core.errors import NoScrollableSurfaceFound
from core.models import RawEntry

LOGGER = logging.getLogger(__name__)

SCROLL_MARKER = "data-callsweep-scroll"

# Candidate selectors first, then the tallest scrollable div on the page.
_LOCATE_JS = """
({ selectors, marker }) => {
    const scrollable = (el) => el && el.scrollHeight > el.clientHeight;
    let found = null;
    for (const selector of selectors) {
        const el = document.querySelector(selector);
        if (scrollable(el)) {
            found = el;
            break;
        }
    }
    if (!found) {
        let tallest = 0;
        for (const div of document.getElementsByTagName('div')) {
            if (scrollable(div) && div.scrollHeight > tallest) {
                found = div;
                tallest = div.scrollHeight;
            }
        }
    }
    if (!found) {
        return false;
    }
    document.querySelectorAll(`[${marker}]`).forEach((el) => el.removeAttribute(marker));
    found.setAttribute(marker, '1');
    return true;
}
"""

_SNAPSHOT_JS = """
({ card, sender, timestamp, identity }) => {
    return Array.from(document.querySelectorAll(card)).map((row) => {
        const holder = row.closest(`[${identity}]`);
        const senderEl = row.querySelector(sender);
        const stampEl = row.querySelector(timestamp);
        return {
            identity: holder ? holder.getAttribute(identity) : null,
            text: row.textContent || '',
            sender: senderEl ? senderEl.textContent : null,
            timestamp: stampEl ? stampEl.textContent : null,
        };
    });
}
"""

_METRICS_JS = """
(marker) => {
    const el = document.querySelector(`[${marker}]`);
    return el ? { top: el.scrollTop, height: el.clientHeight } : null;
}
"""

_SMOOTH_SCROLL_JS = """
({ marker, top }) => {
    document.querySelector(`[${marker}]`).scrollTo({ top, behavior: 'smooth' });
}
"""

_JUMP_SCROLL_JS = """
({ marker, top }) => {
    document.querySelector(`[${marker}]`).scrollTop = top;
}
"""


def _parse_identity(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        identity = int(value)
    except ValueError:
        return None
    return identity if identity >= 0 else None


class PlaywrightSurface:
    """HostSurfacePort over a live Playwright page."""

    def __init__(self, page: Page, selectors: SelectorConfig, browser_config: BrowserConfig) -> None:
        self._page = page
        self._selectors = selectors
        self._browser_config = browser_config
        self._last_scroll_top = 0.0

    async def locate(self) -> None:
        found = await self._page.evaluate(
            _LOCATE_JS,
            {"selectors": list(self._selectors.scroll_containers), "marker": SCROLL_MARKER},
        )
        if not found:
            raise NoScrollableSurfaceFound("No scrollable container on the page")
        self._last_scroll_top = 0.0
        LOGGER.info("Scroll container located")

    async def snapshot(self) -> List[RawEntry]:
        rows = await self._page.evaluate(
            _SNAPSHOT_JS,
            {
                "card": self._selectors.card,
                "sender": self._selectors.sender,
                "timestamp": self._selectors.timestamp,
                "identity": self._selectors.identity_attribute,
            },
        )
        entries: List[RawEntry] = []
        for row in rows:
            identity = _parse_identity(row.get("identity"))
            if identity is None:
                LOGGER.warning("Found row without a usable %s", self._selectors.identity_attribute)
                continue
            entries.append(
                RawEntry(
                    identity=identity,
                    text=row.get("text") or "",
                    sender=row.get("sender"),
                    timestamp=row.get("timestamp"),
                )
            )
        return entries

    async def _metrics(self) -> dict:
        metrics = await self._page.evaluate(_METRICS_JS, SCROLL_MARKER)
        if metrics is None:
            raise NoScrollableSurfaceFound("Scroll container disappeared from the page")
        return metrics

    async def scroll_position(self) -> float:
        metrics = await self._metrics()
        return float(metrics["top"])

    async def reveal_more(self) -> None:
        """Scroll one step past the last settled position and wait for it."""

        metrics = await self._metrics()
        step = min(
            float(self._browser_config.scroll_step_px),
            metrics["height"] * self._browser_config.scroll_step_ratio,
        )
        target = self._last_scroll_top + step
        payload = {"marker": SCROLL_MARKER, "top": target}
        try:
            await self._page.evaluate(_SMOOTH_SCROLL_JS, payload)
            await self._page.wait_for_timeout(self._browser_config.settle_delay_ms)
        except PlaywrightError as exc:
            LOGGER.warning("Smooth scroll failed, jumping instead: %s", exc)
            await self._page.evaluate(_JUMP_SCROLL_JS, payload)
        self._last_scroll_top = await self.scroll_position()

    async def reload(self) -> None:
        LOGGER.info("Reloading page")
        await self._page.reload()


async def _find_or_open_page(browser: Browser, page_url: str) -> Page:
    pages = [page for context in browser.contexts for page in context.pages]
    for page in pages:
        if page.url.startswith(page_url):
            return page
    context = browser.contexts[0] if browser.contexts else await browser.new_context()
    page = await context.new_page()
    await page.goto(page_url)
    return page


@asynccontextmanager
async def open_surface(
    browser_config: BrowserConfig,
    selectors: SelectorConfig,
) -> AsyncIterator[PlaywrightSurface]:
    """Open the message queue page and yield a surface over it.

    Modes, in order of preference:
    - cdp_url: attach to an already running, logged-in Chrome
    - user_data_dir: launch a persistent profile so the login survives runs
    - otherwise: launch a fresh browser (login happens in that window)
    """

    async with async_playwright() as playwright:
        chromium = playwright.chromium
        if browser_config.cdp_url:
            LOGGER.info("Connecting to browser over CDP")
            browser = await chromium.connect_over_cdp(browser_config.cdp_url)
            page = await _find_or_open_page(browser, browser_config.page_url)
            # Closing a CDP connection detaches without killing the user's browser.
            closer = browser.close
        elif browser_config.user_data_dir:
            LOGGER.info("Launching persistent browser profile at %s", browser_config.user_data_dir)
            context = await chromium.launch_persistent_context(
                browser_config.user_data_dir,
                headless=browser_config.headless,
            )
            page = context.pages[0] if context.pages else await context.new_page()
            await page.goto(browser_config.page_url)
            closer = context.close
        else:
            LOGGER.info("Launching browser")
            browser = await chromium.launch(headless=browser_config.headless)
            page = await _find_or_open_page(browser, browser_config.page_url)
            closer = browser.close

        try:
            await page.wait_for_selector(
                selectors.card,
                state="attached",
                timeout=browser_config.ready_timeout_ms,
            )
            yield PlaywrightSurface(page, selectors, browser_config)
        finally:
            await closer()
