"""
Test doubles for the browsing engine.

FakeEngine implements the BrowserEngine protocol against a fake DOM: a dict
mapping selectors to element states. Every call is recorded so tests can
assert exactly what a strategy or session did. FakeEngineFactory hands out
one FakeEngine per service and keeps them addressable by service id.

Navigation can be held open with an asyncio.Event (to keep a session
INITIALIZING), made to fail a number of times, or made to hang forever.
Clicks can hang too, to hold a submission past the strategy timeout.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from hyperchat.config.schema import ServiceDescriptor
from hyperchat.engine.base import EngineCallbacks
from hyperchat.exceptions import EngineError, NavigationError


@dataclass
class FakeElement:
    """State of one element in the fake DOM."""

    visible: bool = True
    enabled: bool = True
    clickable: bool = True
    value: str = ""


def dom_for(descriptor: ServiceDescriptor) -> dict[str, FakeElement]:
    """Fake DOM where the service's primary input and submit selectors match."""
    return {
        descriptor.input_selectors[0]: FakeElement(),
        descriptor.submit_selectors[0]: FakeElement(),
    }


@dataclass
class FakeEngine:
    """In-memory BrowserEngine with a fake DOM and a call log."""

    service_id: str
    dom: dict[str, FakeElement] = field(default_factory=dict)
    navigation_gate: asyncio.Event | None = None
    navigation_failures: int = 0
    hang_navigation: bool = False
    fail_insert: bool = False
    hanging_clicks: int = 0

    navigations: list[str] = field(default_factory=list)
    inserted: list[tuple[str, str, bool]] = field(default_factory=list)
    clicks: list[str] = field(default_factory=list)
    enters: list[str] = field(default_factory=list)
    scripts: list[str] = field(default_factory=list)
    lifecycle: list[str] = field(default_factory=list)
    callbacks: EngineCallbacks = field(default_factory=EngineCallbacks)
    closed: bool = False
    _url: str | None = None

    @property
    def current_url(self) -> str | None:
        return self._url

    async def navigate(self, url: str, timeout: float | None = None) -> None:
        self.navigations.append(url)
        if self.hang_navigation:
            await asyncio.Event().wait()
        if self.navigation_gate is not None:
            await self.navigation_gate.wait()
        if self.navigation_failures > 0:
            self.navigation_failures -= 1
            raise NavigationError(self.service_id, f"net::ERR_CONNECTION_REFUSED at {url}")
        self._url = url

    async def locate(self, selectors: Sequence[str], timeout: float = 0) -> str | None:
        for selector in selectors:
            element = self.dom.get(selector)
            if element is not None and element.visible and element.enabled:
                return selector
        return None

    async def insert_text(self, selector: str, text: str, focus: bool = True) -> None:
        if self.fail_insert:
            raise EngineError(f"[{self.service_id}] element detached")
        self.dom[selector].value = text
        self.inserted.append((selector, text, focus))

    async def click(self, selector: str) -> bool:
        if self.hanging_clicks > 0:
            self.hanging_clicks -= 1
            await asyncio.Event().wait()
        if not self.dom[selector].clickable:
            return False
        self.clicks.append(selector)
        return True

    async def press_enter(self, selector: str, focus: bool = True) -> None:
        self.enters.append(selector)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.scripts.append(script)
        return None

    async def stop(self) -> None:
        self.lifecycle.append("stop")

    def set_callbacks(self, callbacks: EngineCallbacks) -> None:
        self.callbacks = callbacks

    def clear_callbacks(self) -> None:
        self.lifecycle.append("clear_callbacks")
        self.callbacks = EngineCallbacks()

    async def close(self) -> None:
        self.lifecycle.append("close")
        self.closed = True

    # Test helpers

    def crash(self) -> None:
        """Fire the crash callback like a dead renderer would."""
        if self.callbacks.on_crash is not None:
            self.callbacks.on_crash()

    def close_externally(self) -> None:
        if self.callbacks.on_closed is not None:
            self.callbacks.on_closed()

    @property
    def submitted_texts(self) -> list[str]:
        return [text for _, text, _ in self.inserted]


class FakeEngineFactory:
    """
    EngineFactory producing FakeEngines.

    Args:
        doms: Fake DOM per service id (default: dom_for(descriptor))
        gates: Navigation gate per service id
        failing: Service ids whose engine cannot be created
        create_delay: Seconds each engine takes to create
    """

    def __init__(
        self,
        doms: dict[str, dict[str, FakeElement]] | None = None,
        gates: dict[str, asyncio.Event] | None = None,
        failing: set[str] | None = None,
        create_delay: float = 0,
    ):
        self.doms = doms or {}
        self.gates = gates or {}
        self.failing = failing or set()
        self.create_delay = create_delay
        self.engines: dict[str, FakeEngine] = {}
        self.created: list[str] = []
        self.closed = False

    async def create_engine(self, descriptor: ServiceDescriptor) -> FakeEngine:
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if descriptor.id in self.failing:
            raise EngineError(f"[{descriptor.id}] Failed to create browser context")
        engine = FakeEngine(
            service_id=descriptor.id,
            dom=self.doms.get(descriptor.id, dom_for(descriptor)),
            navigation_gate=self.gates.get(descriptor.id),
        )
        self.engines[descriptor.id] = engine
        self.created.append(descriptor.id)
        return engine

    async def close(self) -> None:
        self.closed = True


def make_service(
    service_id: str,
    order: int = 1,
    strategy: str = "url_parameter",
    **overrides: Any,
) -> ServiceDescriptor:
    """Build a ServiceDescriptor with sensible test defaults."""
    data: dict[str, Any] = {
        "id": service_id,
        "name": service_id.title(),
        "order": order,
        "strategy": strategy,
        "base_url": f"https://{service_id}.example.com/chat",
    }
    if strategy == "simulated_input":
        data.setdefault("input_selectors", ["textarea#prompt", "div[contenteditable='true']"])
        data.setdefault("submit_selectors", ["button[type='submit']", "button[aria-label='Send']"])
    data.update(overrides)
    return ServiceDescriptor(**data)
