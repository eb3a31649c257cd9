"""
Simulated-input strategy.

Many services ignore a value assigned by script because their editors only
react to trusted input events. This strategy drives the page the way a user
would:

1. Navigate to the service's base page unless already on it (follow-up
   prompts stay on the current conversation)
2. Locate the input through the ordered input selectors, first visible and
   enabled match wins
3. Insert the raw prompt like a paste (never focusing the input for
   services marked skip_focus)
4. Wait for the page to settle, then click the first usable submit control
   or, as a last resort, press Enter in the input

Selector lists come from the ServiceDescriptor and are therefore
replaceable configuration.
"""

import asyncio
import logging
from urllib.parse import urlparse

from hyperchat.config.constants import (
    INPUT_LOCATE_TIMEOUT_SECONDS,
    SUBMIT_SETTLE_SECONDS,
)
from hyperchat.config.schema import ServiceDescriptor
from hyperchat.engine.base import BrowserEngine
from hyperchat.exceptions import EngineError, SelectorsExhausted, SubmitFailed

from .base import BaseStrategy
from .registry import StrategyRegistry

logger = logging.getLogger(__name__)


@StrategyRegistry.register
class SimulatedInputStrategy(BaseStrategy):
    """
    Paste a prompt into the page and submit it through the page's controls.

    Attributes:
        descriptor: Service this strategy drives
        follow_up: Paste into the current page without navigating first
    """

    def __init__(self, descriptor: ServiceDescriptor, follow_up: bool = False):
        super().__init__(descriptor)
        self.follow_up = follow_up

    @classmethod
    def kind(cls) -> str:
        return "simulated_input"

    def is_on_service_page(self, url: str | None) -> bool:
        """True if url has the origin of the home or base page and lies under its path."""
        if not url:
            return False
        current = urlparse(url)
        current_path = current.path.rstrip("/")
        for page in (self.descriptor.base_url, self.descriptor.home_url):
            expected = urlparse(page)
            if (current.scheme, current.netloc.lower()) != (
                expected.scheme,
                expected.netloc.lower(),
            ):
                continue
            prefix = expected.path.rstrip("/")
            if not prefix or current_path == prefix or current_path.startswith(prefix + "/"):
                return True
        return False

    async def submit(self, engine: BrowserEngine, prompt: str) -> None:
        service_id = self.descriptor.id
        focus = not self.descriptor.skip_focus

        if not self.follow_up and not self.is_on_service_page(engine.current_url):
            logger.debug(f"[{service_id}] Navigating to {self.descriptor.base_url}")
            await engine.navigate(self.descriptor.base_url)

        input_selectors = self.descriptor.input_selectors
        input_selector = await engine.locate(
            input_selectors, timeout=INPUT_LOCATE_TIMEOUT_SECONDS
        )
        if input_selector is None:
            raise SelectorsExhausted(
                service_id,
                f"No visible input matched any of {len(input_selectors)} selectors",
            )
        logger.debug(f"[{service_id}] Found input using selector: {input_selector}")

        try:
            await engine.insert_text(input_selector, prompt, focus=focus)
        except EngineError as e:
            raise SubmitFailed(service_id, f"Could not insert prompt: {e}") from e

        await asyncio.sleep(SUBMIT_SETTLE_SECONDS)

        submit_selector = await engine.locate(self.descriptor.submit_selectors)
        try:
            if submit_selector is not None and await engine.click(submit_selector):
                logger.debug(f"[{service_id}] Clicked submit using selector: {submit_selector}")
                return

            logger.debug(f"[{service_id}] No submit control usable, pressing Enter")
            await engine.press_enter(input_selector, focus=focus)
        except EngineError as e:
            raise SubmitFailed(service_id, f"Could not submit prompt: {e}") from e
