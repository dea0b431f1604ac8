"""
Playwright-based Zoom web client driver.

Launches Chromium, walks the Zoom "join from your browser" flow, injects the
audio recorder script and streams its chunks back to the orchestrator. A
monitor task watches the page and reports when the meeting is over.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
from typing import Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from meeting_recorder.config.settings import BotSettings
from meeting_recorder.core.exceptions import JoinFailedError
from meeting_recorder.core.logging import get_logger
from .base import AutomationDriver
from .zoom_scripts import (
    CHUNK_BINDING,
    START_RECORDER_JS,
    STOP_RECORDER_JS,
    get_combined_selector,
    get_selectors_for,
)

logger = get_logger("zoom_driver")


CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--use-fake-ui-for-media-stream",  # Auto-accept permissions
    "--autoplay-policy=no-user-gesture-required",
    "--disable-blink-features=AutomationControlled",
]


class ZoomWebDriver(AutomationDriver):
    """
    Automation driver for the Zoom web client.

    Usage pattern:
        driver = ZoomWebDriver(settings.bot)
        driver.on_fragment(store_chunk)
        driver.on_meeting_ended(request_stop)
        await driver.join(url, passcode)
        ...
        await driver.stop_capture()
        await driver.release()
    """

    def __init__(self, bot: BotSettings):
        super().__init__()
        self.bot = bot

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._monitor_task: Optional[asyncio.Task] = None

        self._capturing = False
        self._ended_reported = False

    @property
    def page(self) -> Optional[Page]:
        return self._page

    async def join(self, target: str, passcode: str = "") -> None:
        """
        Join a Zoom meeting from the browser and start audio capture.

        Flow:
        1. Launch Chromium and expose the chunk binding
        2. Navigate to the meeting URL
        3. Switch to the web client, sign in / enter passcode if prompted
        4. Inject the recorder and start the meeting monitor
        """
        try:
            await self._launch()
            page = self._page

            # --- Step 1: Navigate to meeting URL ---
            logger.info(f"Navigating to Zoom meeting: {target}")
            await page.goto(
                target,
                wait_until="networkidle",
                timeout=self.bot.navigation_timeout_seconds * 1000,
            )

            # --- Step 2: Web client, credentials, passcode ---
            await self._open_web_client(page)
            await page.wait_for_timeout(3000)
            await self._sign_in_if_prompted(page)
            await self._enter_name(page)
            await self._enter_passcode(page, passcode)

            # --- Step 3: Wait for remote media and start recorder ---
            await page.wait_for_timeout(self.bot.join_settle_seconds * 1000)
            result = await page.evaluate(
                START_RECORDER_JS,
                {
                    "binding": CHUNK_BINDING,
                    "timesliceMs": self.bot.chunk_interval_ms,
                    "waitMs": int(self.bot.media_wait_seconds * 1000),
                },
            )
        except PlaywrightTimeoutError as exc:
            raise JoinFailedError(f"Timed out joining meeting: {exc}", {"target": target}) from exc
        except PlaywrightError as exc:
            raise JoinFailedError(f"Browser automation failed: {exc}", {"target": target}) from exc

        if not result or not result.get("started"):
            error = (result or {}).get("error", "recorder did not start")
            raise JoinFailedError(f"Audio capture did not start: {error}", {"target": target})

        self._capturing = True
        logger.info(f"✅ Recording started in page (mime: {result.get('mimeType')})")

        self._monitor_task = asyncio.create_task(self._monitor_meeting(), name="zoom-meeting-monitor")

    async def stop_capture(self) -> None:
        """Stop the in-page MediaRecorder. The final chunk still flushes."""
        if not self._capturing:
            return
        self._capturing = False

        if self._page is None or self._page.is_closed():
            return
        try:
            await self._page.evaluate(STOP_RECORDER_JS)
            logger.info("Stopped recorder in page")
        except PlaywrightError as e:
            logger.warning(f"Error stopping recorder in page: {e}")

    async def release(self) -> None:
        """Close the page, context, browser and Playwright. Never raises."""
        self._capturing = False
        # Closing the page below must not look like the meeting ending
        self._ended_reported = True

        if self._monitor_task is not None and not self._monitor_task.done():
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"Meeting monitor ended with error: {e}")
        self._monitor_task = None

        for name, closer in (
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        logger.info("Browser resources released")

    async def _launch(self) -> None:
        logger.info("Launching Chromium...")
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.bot.headless,
            ignore_default_args=["--enable-automation"],
            args=CHROMIUM_ARGS,
        )
        self._context = await self._browser.new_context(
            user_agent=self.bot.user_agent,
            permissions=["microphone", "camera"],
        )
        await self._context.add_init_script(
            "Object.defineProperty(navigator, 'webdriver', {get: () => undefined})"
        )
        self._page = await self._context.new_page()
        await self._page.expose_function(CHUNK_BINDING, self._receive_chunk)
        self._page.on("close", lambda _page: self._report_ended("page closed"))

    async def _open_web_client(self, page: Page) -> None:
        """Click "Join from your browser", falling back to a direct web client link."""
        try:
            selector = get_combined_selector("join_from_browser")
            await page.wait_for_selector(selector, timeout=6000)
            await page.click(selector)
            logger.info("Clicked 'Join from your browser'")
            return
        except PlaywrightTimeoutError:
            logger.info("join-from-browser link not found, attempting link alternatives")

        for selector in get_selectors_for("web_client_link"):
            try:
                await page.click(selector, timeout=2000)
                logger.info(f"Opened web client via {selector}")
                return
            except PlaywrightError:
                continue
        # Some links redirect straight into the web client

    async def _sign_in_if_prompted(self, page: Page) -> None:
        if not (self.bot.email and self.bot.zoom_password):
            return
        email_selector = get_combined_selector("email_input")
        if await page.query_selector(email_selector) is None:
            return
        try:
            await page.fill(email_selector, self.bot.email)
            await page.fill(get_combined_selector("password_input"), self.bot.zoom_password)
            await page.click(get_combined_selector("submit_button"))
            logger.info("Attempted Zoom sign-in for bot account")
        except PlaywrightError as e:
            logger.info(f"Sign-in attempt failed or not necessary: {e}")

    async def _enter_name(self, page: Page) -> None:
        name_selector = get_combined_selector("name_input")
        try:
            if await page.query_selector(name_selector) is not None:
                await page.fill(name_selector, self.bot.name)
                logger.info(f"Entered display name: {self.bot.name}")
        except PlaywrightError as e:
            logger.debug(f"Name field not handled: {e}")

    async def _enter_passcode(self, page: Page, passcode: str) -> None:
        if not passcode:
            return
        passcode_selector = get_combined_selector("passcode_input")
        try:
            if await page.query_selector(passcode_selector) is not None:
                await page.fill(passcode_selector, passcode)
                await page.keyboard.press("Enter")
                logger.info("Entered passcode")
        except PlaywrightError as e:
            logger.info(f"No passcode field or handled earlier: {e}")

    async def _receive_chunk(self, b64: str) -> None:
        """Binding target: called from the page for every recorder chunk."""
        try:
            data = base64.b64decode(b64)
        except (binascii.Error, TypeError) as e:
            logger.error(f"Discarding undecodable chunk: {e}")
            return
        logger.debug(f"Chunk received from page: {len(data)} bytes")
        self.emit_fragment(data)

    async def _monitor_meeting(self) -> None:
        """Poll the page until the meeting looks over, then report it once."""
        page = self._page
        in_meeting = get_combined_selector("in_meeting")
        ended_banners = get_selectors_for("meeting_ended")

        try:
            while page is not None and not page.is_closed():
                await asyncio.sleep(self.bot.monitor_interval_seconds)
                if page.is_closed():
                    break

                for banner in ended_banners:
                    if await page.locator(banner).count() > 0:
                        self._report_ended("ended by host")
                        return

                if await page.locator(in_meeting).count() > 0:
                    continue

                # Wait and check again to avoid false positives
                logger.info("No in-meeting indicators found - meeting may have ended")
                await asyncio.sleep(5)
                if page.is_closed() or await page.locator(in_meeting).count() == 0:
                    self._report_ended("in-meeting controls disappeared")
                    return
                logger.debug("False positive - still in meeting after recheck")
        except PlaywrightError as e:
            if "has been closed" in str(e):
                self._report_ended("browser closed")
            else:
                logger.error(f"Error monitoring Zoom meeting: {e}")
            return

        self._report_ended("page closed")

    def _report_ended(self, reason: str) -> None:
        if self._ended_reported:
            return
        self._ended_reported = True
        logger.info(f"Meeting ended: {reason}")
        self.emit_meeting_ended(reason)
