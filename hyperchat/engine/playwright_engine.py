"""
Playwright implementation of the browsing engine.

Each session gets its own BrowserContext and Page, so cookies, storage and
crashes stay isolated per service. The Playwright driver and the Browser
process are shared through PlaywrightEnginePool, which is the only shared
resource between sessions.

Three launch modes (see EngineSettings):
- Default: launch one browser, one new context per session
- cdp_endpoint: attach to a running Chromium over CDP, one new context per
  session
- profile_dir: one persistent context per service under
  profile_dir/<service id>, so service logins survive restarts

Example:
    >>> pool = PlaywrightEnginePool(EngineSettings(headless=True))
    >>> await pool.start()
    >>> engine = await pool.create_engine(descriptor)
    >>> await engine.navigate(descriptor.home_url)
    >>> await engine.close()
    >>> await pool.close()
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from hyperchat.config.constants import DEFAULT_WINDOW_HEIGHT, DEFAULT_WINDOW_WIDTH
from hyperchat.config.schema import EngineSettings, ServiceDescriptor
from hyperchat.exceptions import EngineError, NavigationError

from .base import EngineCallbacks
from .scripts import ENTER_SCRIPT, LOCATE_SCRIPT, PASTE_SCRIPT

logger = logging.getLogger(__name__)

# Playwright error fragments meaning "a newer navigation replaced this one"
SUPERSEDED_NAVIGATION_MARKERS = (
    "interrupted by another navigation",
    "net::ERR_ABORTED",
    "NS_BINDING_ABORTED",
)

# Delay after focusing an input before typing, some editors mount lazily
FOCUS_SETTLE_SECONDS = 0.2

# Upper bound for a single click attempt (milliseconds)
CLICK_TIMEOUT_MS = 2000

# Locator polling interval while waiting for selectors (milliseconds)
LOCATE_POLL_MS = 250


def is_superseded_navigation(error: Exception) -> bool:
    """Return True if a navigation error only means a newer navigation won."""
    message = str(error)
    return any(marker in message for marker in SUPERSEDED_NAVIGATION_MARKERS)


class PlaywrightEngine:
    """
    BrowserEngine backed by one Playwright Page.

    Attributes:
        service_id: Service this engine is bound to (used in errors)
        page: The Playwright page
        context: The page's BrowserContext, closed together with the engine
    """

    def __init__(self, service_id: str, page: Page, context: BrowserContext):
        self.service_id = service_id
        self.page = page
        self.context = context
        self._callbacks = EngineCallbacks()
        self._closed = False

        page.on("crash", self._handle_crash)
        page.on("close", self._handle_close)

    @property
    def current_url(self) -> str | None:
        url = self.page.url
        if not url or url == "about:blank":
            return None
        return url

    async def navigate(self, url: str, timeout: float | None = None) -> None:
        """
        Load url and wait for DOMContentLoaded.

        Raises:
            NavigationError: On network errors, timeouts or a closed page
        """
        kwargs: dict[str, Any] = {"wait_until": "domcontentloaded"}
        if timeout is not None:
            kwargs["timeout"] = timeout * 1000

        try:
            response = await self.page.goto(url, **kwargs)
        except PlaywrightTimeoutError as e:
            raise NavigationError(self.service_id, f"Timed out loading {url}") from e
        except PlaywrightError as e:
            if is_superseded_navigation(e):
                logger.debug(f"[{self.service_id}] Navigation to {url} superseded")
                return
            raise NavigationError(self.service_id, f"Failed to load {url}: {e}") from e

        if response is not None and response.status >= 400:
            # Challenge pages (403/429) still render usable content
            logger.warning(
                f"[{self.service_id}] {url} answered HTTP {response.status}"
            )

    async def locate(self, selectors: Sequence[str], timeout: float = 0) -> str | None:
        selector_list = list(selectors)
        if not selector_list:
            return None

        try:
            if timeout <= 0:
                return await self.page.evaluate(LOCATE_SCRIPT, selector_list)

            handle = await self.page.wait_for_function(
                LOCATE_SCRIPT,
                arg=selector_list,
                timeout=timeout * 1000,
                polling=LOCATE_POLL_MS,
            )
            return await handle.json_value()
        except PlaywrightTimeoutError:
            return None
        except PlaywrightError as e:
            raise EngineError(f"[{self.service_id}] Selector lookup failed: {e}") from e

    async def insert_text(self, selector: str, text: str, focus: bool = True) -> None:
        """
        Replace the element's content the way select-all and paste would.

        Existing content is cleared first on both paths, so a retried
        submission never leaves the prompt in the input twice. With focus
        allowed the text goes through the browser's native text
        input path, so the page receives trusted beforeinput/input events.
        Without focus a page script dispatches a paste (content-editable) or
        uses the native value setter (form fields).
        """
        try:
            if focus:
                locator = self.page.locator(selector).first
                await locator.fill("")
                await locator.focus()
                await asyncio.sleep(FOCUS_SETTLE_SECONDS)
                await self.page.keyboard.insert_text(text)
                return

            result = await self.page.evaluate(
                PASTE_SCRIPT, {"selector": selector, "text": text}
            )
        except PlaywrightError as e:
            raise EngineError(f"[{self.service_id}] Text insertion failed: {e}") from e

        if not result or result.get("status") != "ok":
            raise EngineError(
                f"[{self.service_id}] Text insertion target vanished: {selector}"
            )

    async def click(self, selector: str) -> bool:
        try:
            await self.page.locator(selector).first.click(timeout=CLICK_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            logger.debug(f"[{self.service_id}] Submit control not clickable: {selector}")
            return False
        except PlaywrightError as e:
            raise EngineError(f"[{self.service_id}] Click failed: {e}") from e
        return True

    async def press_enter(self, selector: str, focus: bool = True) -> None:
        try:
            if focus:
                await self.page.locator(selector).first.press("Enter")
                return
            delivered = await self.page.evaluate(ENTER_SCRIPT, selector)
        except PlaywrightError as e:
            raise EngineError(f"[{self.service_id}] Enter key failed: {e}") from e

        if not delivered:
            raise EngineError(f"[{self.service_id}] Enter key target vanished: {selector}")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            return await self.page.evaluate(script, arg)
        except PlaywrightError as e:
            raise EngineError(f"[{self.service_id}] Script failed: {e}") from e

    async def stop(self) -> None:
        if self._closed or self.page.is_closed():
            return
        try:
            await self.page.evaluate("() => window.stop()")
        except PlaywrightError as e:
            # A crashed or navigating page cannot run scripts; nothing to stop
            logger.debug(f"[{self.service_id}] stop() ignored: {e}")

    def set_callbacks(self, callbacks: EngineCallbacks) -> None:
        self._callbacks = callbacks

    def clear_callbacks(self) -> None:
        self._callbacks = EngineCallbacks()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.clear_callbacks()
        self.page.remove_listener("crash", self._handle_crash)
        self.page.remove_listener("close", self._handle_close)

        try:
            await self.context.close()
        except PlaywrightError as e:
            logger.warning(f"[{self.service_id}] Failed to close browser context: {e}")
        else:
            logger.debug(f"[{self.service_id}] Released browser context")

    def _handle_crash(self, page: Page) -> None:
        logger.warning(f"[{self.service_id}] Page crashed")
        if self._callbacks.on_crash is not None:
            self._callbacks.on_crash()

    def _handle_close(self, page: Page) -> None:
        if self._closed:
            return
        logger.info(f"[{self.service_id}] Page closed externally")
        if self._callbacks.on_closed is not None:
            self._callbacks.on_closed()


class PlaywrightEnginePool:
    """
    Shared Playwright driver and browser for all sessions of the process.

    Attributes:
        settings: Engine settings from configuration
        viewport: (width, height) given to every new context
    """

    def __init__(
        self,
        settings: EngineSettings,
        viewport: tuple[int, int] = (DEFAULT_WINDOW_WIDTH, DEFAULT_WINDOW_HEIGHT),
    ):
        self.settings = settings
        self.viewport = viewport
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._start_lock = asyncio.Lock()

    async def start(self) -> None:
        """Start the driver and launch or attach to the shared browser."""
        async with self._start_lock:
            if self._playwright is not None:
                return

            self._playwright = await async_playwright().start()
            browser_type = getattr(self._playwright, self.settings.browser)

            try:
                if self.settings.cdp_endpoint:
                    logger.info(f"Connecting to browser over CDP: {self.settings.cdp_endpoint}")
                    self._browser = await self._playwright.chromium.connect_over_cdp(
                        self.settings.cdp_endpoint
                    )
                elif self.settings.profile_dir is None:
                    logger.info(
                        f"Launching {self.settings.browser} "
                        f"(headless={self.settings.headless})"
                    )
                    self._browser = await browser_type.launch(headless=self.settings.headless)
                else:
                    # Persistent contexts launch their own browser per service
                    logger.info(f"Using persistent profiles under {self.settings.profile_dir}")
            except PlaywrightError as e:
                await self._playwright.stop()
                self._playwright = None
                raise EngineError(f"Failed to start {self.settings.browser}: {e}") from e

    async def create_engine(self, descriptor: ServiceDescriptor) -> PlaywrightEngine:
        """
        Create an isolated engine for one session of a service.

        Raises:
            EngineError: If the browser context cannot be created
        """
        await self.start()
        assert self._playwright is not None

        width, height = self.viewport
        context_options: dict[str, Any] = {
            "viewport": {"width": width, "height": height},
            "locale": "en-US",
        }
        if descriptor.user_agent:
            context_options["user_agent"] = descriptor.user_agent

        try:
            if self.settings.profile_dir is not None:
                profile = self.settings.profile_dir / descriptor.id
                profile.mkdir(parents=True, exist_ok=True)
                browser_type = getattr(self._playwright, self.settings.browser)
                context = await browser_type.launch_persistent_context(
                    str(profile),
                    headless=self.settings.headless,
                    **context_options,
                )
                page = context.pages[0] if context.pages else await context.new_page()
            else:
                assert self._browser is not None
                context = await self._browser.new_context(**context_options)
                page = await context.new_page()
        except PlaywrightError as e:
            raise EngineError(
                f"[{descriptor.id}] Failed to create browser context: {e}"
            ) from e

        logger.debug(f"[{descriptor.id}] Created browser context")
        return PlaywrightEngine(descriptor.id, page, context)

    async def close(self) -> None:
        """Close the shared browser and stop the driver. Idempotent."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning(f"Failed to close browser: {e}")
            self._browser = None

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.info("Stopped Playwright")
