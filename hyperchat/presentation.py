"""
Presentation state machine for conversation windows and process presence.

Display mode (per window) and process presence (per process) combine into
four reachable states:

    (HIDDEN,  BACKGROUND)   no windows, running as a background utility
    (HIDDEN,  FOREGROUND)   last window just closed, background debounce pending
    (NORMAL,  FOREGROUND)   regular titled window
    (OVERLAY, FOREGROUND)   full-workspace, chrome-less floating window

Presence is FOREGROUND whenever a window is shown. Every foreground
activation claims the shared chrome (the application-level command surface)
and every move to BACKGROUND releases it. The claim is reasserted with the
host on every qualifying event; the host's own record of the chrome owner
is never trusted.

Overlay transitions are animated. A window that is mid-transition refuses a
second transition (TransitionReentrancy, logged and dropped), and a window
destroyed while an animation runs is never written to afterwards.

Example:
    >>> controller = PresentationController(host, on_window_opened=app.open_window)
    >>> window_id = await controller.show("Compare Rust and Go")  # NORMAL -> OVERLAY
    >>> await controller.exit_overlay(window_id)                 # exact restore
    >>> controller.window_closed(window_id)                      # -> BACKGROUND
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from hyperchat.config.constants import (
    BACKGROUND_DEBOUNCE_SECONDS,
    DEFAULT_WINDOW_HEIGHT,
    DEFAULT_WINDOW_WIDTH,
)
from hyperchat.exceptions import TransitionReentrancy
from hyperchat.windows import OVERLAY_STYLE, Geometry, WindowHost, WindowStyle

logger = logging.getLogger(__name__)


# ============================================================================
# State
# ============================================================================


class DisplayMode(str, Enum):
    HIDDEN = "hidden"
    NORMAL = "normal"
    OVERLAY = "overlay"


class Presence(str, Enum):
    BACKGROUND = "background"
    FOREGROUND = "foreground"


@dataclass(frozen=True)
class PresentationState:
    display_mode: DisplayMode
    presence: Presence

    def __str__(self) -> str:
        return f"({self.display_mode.value}, {self.presence.value})"


@dataclass(frozen=True)
class RestorePoint:
    """Geometry and style captured when a window enters overlay mode."""

    geometry: Geometry
    style: WindowStyle


@dataclass(frozen=True)
class Transition:
    """One observed state change, with the event that caused it."""

    source: PresentationState
    target: PresentationState
    event: str
    window_id: str | None = None


WindowOpenedHook = Callable[[str, str | None], Awaitable[None]]


# ============================================================================
# Shared chrome
# ============================================================================


class ForegroundChrome:
    """
    Owner of the single shared foreground chrome handle.

    The handle is created only when absent, so repeated activations never
    produce a duplicate. It is installed with the host on every claim even
    when it already exists.
    """

    def __init__(self, host: WindowHost):
        self._host = host
        self.handle: object | None = None

    @property
    def is_claimed(self) -> bool:
        return self.handle is not None

    def claim(self) -> None:
        if self.handle is None:
            self.handle = self._host.create_chrome()
            logger.debug("Created foreground chrome")
        self._host.install_chrome(self.handle)

    def release(self) -> None:
        if self.handle is None:
            return
        handle, self.handle = self.handle, None
        self._host.install_chrome(None)
        self._host.destroy_chrome(handle)
        logger.debug("Released foreground chrome")


# ============================================================================
# Controller
# ============================================================================


class PresentationController:
    """
    Finite state machine for window display mode and process presence.

    Attributes:
        transitions: Every state change in order
        background_debounce: Delay between the last window closing and the
            move to BACKGROUND; 0 moves immediately
    """

    def __init__(
        self,
        host: WindowHost,
        *,
        chrome: ForegroundChrome | None = None,
        on_window_opened: WindowOpenedHook | None = None,
        default_size: tuple[int, int] = (DEFAULT_WINDOW_WIDTH, DEFAULT_WINDOW_HEIGHT),
        background_debounce: float = BACKGROUND_DEBOUNCE_SECONDS,
    ):
        self._host = host
        self.chrome = chrome or ForegroundChrome(host)
        self._on_window_opened = on_window_opened
        self._default_size = default_size
        self.background_debounce = background_debounce

        self.transitions: list[Transition] = []

        self._modes: dict[str, DisplayMode] = {}
        self._restore: dict[str, RestorePoint] = {}
        self._in_transition: dict[str, DisplayMode] = {}
        self._active: str | None = None
        self._presence = Presence.BACKGROUND
        self._background_handle: asyncio.TimerHandle | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> PresentationState:
        """State of the active window combined with process presence."""
        mode = DisplayMode.HIDDEN
        if self._active is not None:
            mode = self._modes.get(self._active, DisplayMode.HIDDEN)
        return PresentationState(display_mode=mode, presence=self._presence)

    @property
    def active_window(self) -> str | None:
        return self._active

    @property
    def windows(self) -> list[str]:
        return list(self._modes)

    def display_mode(self, window_id: str) -> DisplayMode:
        return self._modes.get(window_id, DisplayMode.HIDDEN)

    def restore_point(self, window_id: str) -> RestorePoint | None:
        return self._restore.get(window_id)

    def is_in_transition(self, window_id: str) -> bool:
        return window_id in self._in_transition

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def show(self, prompt: str | None = None) -> str:
        """
        Open a new conversation window.

        Args:
            prompt: Optional prompt; when given, the window goes straight
                into overlay mode

        Returns:
            str: Host id of the new window
        """
        before = self.state
        self._cancel_background()

        window_id = self._host.create_window(self._initial_geometry())
        self._modes[window_id] = DisplayMode.NORMAL
        self._active = window_id
        self._assert_foreground()
        self._record("show", before, window_id)

        if self._on_window_opened is not None:
            await self._on_window_opened(window_id, prompt)

        if prompt is not None:
            if window_id in self._modes and self._host.is_alive(window_id):
                await self.enter_overlay(window_id)
            else:
                logger.info(f"{window_id} closed before entering overlay")
        return window_id

    async def enter_overlay(self, window_id: str | None = None) -> bool:
        """
        NORMAL -> OVERLAY with an animated move to the full workspace frame.

        Idempotent: a window already in overlay, or already animating into
        it, is left alone.

        Returns:
            bool: True if the window is (or is becoming) an overlay
        """
        window_id = window_id or self._active
        if window_id is None:
            return False

        target = self._in_transition.get(window_id)
        if target is DisplayMode.OVERLAY:
            return True
        if target is None:
            if self._modes.get(window_id) is DisplayMode.OVERLAY:
                return True
            if self._modes.get(window_id) is not DisplayMode.NORMAL:
                return False

        try:
            self._begin_transition(window_id, DisplayMode.OVERLAY)
        except TransitionReentrancy as e:
            logger.debug(str(e))
            return False

        before = self.state
        try:
            restore = RestorePoint(
                geometry=self._host.geometry(window_id),
                style=self._host.style(window_id),
            )
            self._restore[window_id] = restore
            frame = self._host.workspace_frame()

            await self._host.animate(window_id, frame, OVERLAY_STYLE, backdrop=True)

            if not self._host.is_alive(window_id):
                logger.info(f"{window_id} was destroyed while entering overlay")
                self._restore.pop(window_id, None)
                return False

            self._host.apply(window_id, frame, OVERLAY_STYLE)
            self._modes[window_id] = DisplayMode.OVERLAY
            self._assert_foreground()
        finally:
            self._in_transition.pop(window_id, None)

        self._record("enter_overlay", before, window_id)
        return True

    async def exit_overlay(self, window_id: str | None = None) -> bool:
        """
        OVERLAY -> NORMAL, restoring the saved geometry and style exactly.

        A call arriving while the window is already transitioning is
        dropped. A missing restore point is an invariant violation: it is
        logged at error level and the window stays in overlay.

        Returns:
            bool: True if the window was restored
        """
        window_id = window_id or self._active
        if window_id is None:
            return False

        try:
            self._begin_transition(window_id, DisplayMode.NORMAL)
        except TransitionReentrancy as e:
            logger.debug(str(e))
            return False

        before = self.state
        try:
            if self._modes.get(window_id) is not DisplayMode.OVERLAY:
                return False

            restore = self._restore.get(window_id)
            if restore is None:
                logger.error(f"{window_id} is in overlay mode without a restore point")
                return False

            if not self._host.is_alive(window_id):
                logger.info(f"{window_id} no longer exists, nothing to restore")
                return False

            await self._host.animate(window_id, restore.geometry, restore.style, backdrop=False)

            if not self._host.is_alive(window_id):
                logger.info(f"{window_id} was destroyed while leaving overlay")
                return False

            self._host.apply(window_id, restore.geometry, restore.style)
            self._modes[window_id] = DisplayMode.NORMAL
            del self._restore[window_id]
        finally:
            self._in_transition.pop(window_id, None)

        self._record("exit_overlay", before, window_id)
        return True

    def window_became_focused(self, window_id: str) -> None:
        """
        Mark a window as focused and force FOREGROUND presence.

        Presence and the chrome claim are reasserted with the host on every
        call, including when the process is already in the foreground.
        A late focus event for a window that is already closed is ignored.
        """
        if window_id not in self._modes:
            logger.debug(f"Ignoring focus event for unknown window {window_id}")
            return

        before = self.state
        self._cancel_background()
        self._active = window_id
        self._assert_foreground()
        self._record("window_became_focused", before, window_id)

    def window_closed(self, window_id: str) -> None:
        """
        Forget a closed window.

        When it was the last window the display mode becomes HIDDEN at once
        and presence drops to BACKGROUND after the debounce, unless a window
        shows up in the meantime. Otherwise presence is unchanged.
        """
        before = self.state
        self._modes.pop(window_id, None)
        self._restore.pop(window_id, None)
        self._in_transition.pop(window_id, None)

        if self._active == window_id:
            self._active = next(reversed(self._modes), None) if self._modes else None

        if self._modes:
            self._record("window_closed", before, window_id)
            return

        if self.background_debounce <= 0:
            self._enter_background()
            self._record("window_closed", before, window_id)
            return

        self._record("window_closed", before, window_id)
        self._cancel_background()
        loop = asyncio.get_running_loop()
        self._background_handle = loop.call_later(
            self.background_debounce, self._background_debounce_fired
        )

    def close(self) -> None:
        """Cancel pending timers; used at shutdown."""
        self._cancel_background()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin_transition(self, window_id: str, target: DisplayMode) -> None:
        if window_id in self._in_transition:
            raise TransitionReentrancy(
                f"{window_id} is already transitioning to "
                f"{self._in_transition[window_id].value}, dropped request for {target.value}"
            )
        self._in_transition[window_id] = target

    def _assert_foreground(self) -> None:
        self._presence = Presence.FOREGROUND
        self._host.set_presence(Presence.FOREGROUND)
        self.chrome.claim()

    def _enter_background(self) -> None:
        self._presence = Presence.BACKGROUND
        self._host.set_presence(Presence.BACKGROUND)
        self.chrome.release()

    def _background_debounce_fired(self) -> None:
        self._background_handle = None
        if self._modes:
            return
        before = self.state
        self._enter_background()
        self._record("background_debounce", before)

    def _cancel_background(self) -> None:
        if self._background_handle is not None:
            self._background_handle.cancel()
            self._background_handle = None

    def _initial_geometry(self) -> Geometry:
        width, height = self._default_size
        frame = self._host.workspace_frame()
        return Geometry(
            x=frame.x + max(0.0, (frame.width - width) / 2),
            y=frame.y + max(0.0, (frame.height - height) / 2),
            width=width,
            height=height,
        )

    def _record(self, event: str, before: PresentationState, window_id: str | None = None) -> None:
        after = self.state
        if after == before:
            return
        self.transitions.append(
            Transition(source=before, target=after, event=event, window_id=window_id)
        )
        logger.info(f"Presentation {before} -> {after} on {event}")
