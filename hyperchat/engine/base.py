"""
Browsing engine protocol.

A BrowserEngine is the exclusively owned browsing context of one Session.
Strategies and sessions talk to it only through this protocol, which keeps
them testable against fake engines and independent of Playwright's types.

Key components:
- EngineCallbacks: Callbacks an engine fires on its own (crash, close)
- BrowserEngine: Operations a session and its strategies need
- EngineFactory: Creates one engine per service, may share a pool

Errors:
    navigate() raises NavigationError; every other operation raises
    EngineError. A navigation superseded by a newer navigation is not a
    failure and returns normally.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from hyperchat.config.schema import ServiceDescriptor


@dataclass
class EngineCallbacks:
    """
    Callbacks wired from an engine to its owning session.

    Engines may invoke these from any thread; the session marshals them
    onto the coordination loop before touching state.

    Attributes:
        on_crash: Engine (renderer) process crashed
        on_closed: Page was closed by something other than the session
    """

    on_crash: Callable[[], None] | None = None
    on_closed: Callable[[], None] | None = None


@runtime_checkable
class BrowserEngine(Protocol):
    """Operations available on one session's browsing context."""

    @property
    def current_url(self) -> str | None:
        """URL of the page currently displayed, None before first load."""
        ...

    async def navigate(self, url: str, timeout: float | None = None) -> None:
        """Load url and wait until the document is ready."""
        ...

    async def locate(self, selectors: Sequence[str], timeout: float = 0) -> str | None:
        """
        Return the first selector matching a visible, enabled element.

        Selectors are tried in order. With timeout > 0 the engine keeps
        polling until a match appears or the timeout expires.
        """
        ...

    async def insert_text(self, selector: str, text: str, focus: bool = True) -> None:
        """Replace the element's content with text, like select-all then paste."""
        ...

    async def click(self, selector: str) -> bool:
        """Click the element; False if it is no longer clickable."""
        ...

    async def press_enter(self, selector: str, focus: bool = True) -> None:
        """Send a carriage return to the element."""
        ...

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a script in the page and return its JSON-serializable result."""
        ...

    async def stop(self) -> None:
        """Stop any in-flight loading."""
        ...

    def set_callbacks(self, callbacks: EngineCallbacks) -> None:
        """Attach callbacks, replacing any previous ones."""
        ...

    def clear_callbacks(self) -> None:
        """Detach all callbacks."""
        ...

    async def close(self) -> None:
        """Release the browsing context. Idempotent."""
        ...


class EngineFactory(Protocol):
    """Creates engines for services; owns any shared pool."""

    async def create_engine(self, descriptor: ServiceDescriptor) -> BrowserEngine:
        """Create a new, isolated engine for one session of this service."""
        ...

    async def close(self) -> None:
        """Release the shared pool."""
        ...
