"""Headless Chromium rendering host driven through Playwright."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from services.capture.host import RenderingHost
from shared.errors import CaptureTimeout, ConfigInvalid
from shared.logging_utils import setup_logging
from shared.timeline_models import HostStatus

logger = setup_logging("browser-host")

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--font-render-hinting=none",
]

# Element.animate runs on real browser time; removing it makes animation
# libraries fall back to requestAnimationFrame, which the virtual clock controls.
DISABLE_WAAPI_SCRIPT = "delete Element.prototype.animate;"

ADVANCE_CLOCK_JS = """
async (ms) => {
    const clock = globalThis.timeweb;
    if (!clock) throw new Error("virtual clock (timeweb) is not installed");
    await clock.goTo(ms);
    return window.__EXPORT_SLIDE_INDEX__ ?? -1;
}
"""

# React schedules renders through MessageChannel, which the virtual clock does
# not intercept, so pumping it lets pending state updates render.
SETTLE_JS = """
(ticks) => new Promise((resolve) => {
    let remaining = ticks;
    function tick() {
        if (--remaining <= 0) { resolve(); return; }
        const channel = new MessageChannel();
        channel.port1.onmessage = tick;
        channel.port2.postMessage(null);
    }
    tick();
})
"""

READ_STATUS_JS = """
() => ({
    ready: window.__EXPORT_READY__ === true,
    done: window.__EXPORT_DONE__ === true,
    slide_index: window.__EXPORT_SLIDE_INDEX__ ?? -1,
})
"""


def build_export_payload(presentation: dict[str, Any], slide_timing: list[dict[str, Any]]) -> dict[str, Any]:
    """Object exposed to the export app as window.__EXPORT_CONFIG__."""
    return {"presentation": presentation, "slideTiming": slide_timing}


class BrowserHost(RenderingHost):
    """Rendering host backed by a Playwright-controlled headless Chromium page."""

    def __init__(self, page: Page, browser: Browser, playwright: Playwright):
        self.page = page
        self.browser = browser
        self.playwright = playwright

    @classmethod
    async def launch(
        cls,
        url: str,
        export_payload: dict[str, Any],
        width: int,
        height: int,
        clock_script: Path | None,
        ready_timeout_ms: float = 30000,
        headless: bool = True,
    ) -> "BrowserHost":
        if clock_script is None or not Path(clock_script).exists():
            raise ConfigInvalid(
                f"Virtual clock script not found: {clock_script}",
                hint="Set EXPORT_CLOCK_SCRIPT (or capture.clock_script) to timeweb.js.",
            )

        playwright = await async_playwright().start()
        browser: Browser | None = None
        try:
            browser = await playwright.chromium.launch(
                headless=headless,
                args=[f"--window-size={width},{height}", *CHROMIUM_ARGS],
            )
            page = await browser.new_page(
                viewport={"width": width, "height": height},
                device_scale_factor=1,
            )

            await page.add_init_script(path=str(clock_script))
            await page.add_init_script(script=DISABLE_WAAPI_SCRIPT)
            await page.add_init_script(
                script=f"window.__EXPORT_CONFIG__ = {json.dumps(export_payload)};"
            )

            page.on("console", _forward_console)
            page.on("pageerror", lambda err: logger.warning("[browser:pageerror] %s", err))

            await page.goto(url, wait_until="networkidle")
            try:
                await page.wait_for_function(
                    "() => window.__EXPORT_READY__ === true",
                    timeout=ready_timeout_ms,
                )
            except PlaywrightTimeoutError as exc:
                raise CaptureTimeout(
                    f"Rendering host was not ready after {ready_timeout_ms / 1000:.0f}s"
                ) from exc
        except BaseException:
            if browser is not None:
                await browser.close()
            await playwright.stop()
            raise

        logger.info("Browser ready, fonts loaded")
        return cls(page, browser, playwright)

    async def advance_clock(self, time_ms: float) -> int:
        return int(await self.page.evaluate(ADVANCE_CLOCK_JS, time_ms))

    async def settle(self, ticks: int) -> None:
        await self.page.evaluate(SETTLE_JS, ticks)

    async def read_status(self) -> HostStatus:
        return HostStatus(**await self.page.evaluate(READ_STATUS_JS))

    async def capture(self) -> bytes:
        return await self.page.screenshot(type="png", omit_background=False)

    async def close(self) -> None:
        try:
            await self.browser.close()
        except PlaywrightError as exc:
            logger.debug("Browser already closed: %s", exc)
        await self.playwright.stop()


def _forward_console(message: Any) -> None:
    if message.type in ("error", "warning"):
        logger.warning("[browser:%s] %s", message.type, message.text)
