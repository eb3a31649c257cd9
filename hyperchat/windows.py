"""
Window host abstraction.

The desktop toolkit that actually draws windows is an external collaborator.
Everything the core needs from it is described by the WindowHost protocol:
creating and destroying windows, reading and applying geometry and style,
animating between them, focusing, switching process presence, owning the
shared foreground chrome, and applying column layouts.

InMemoryWindowHost implements the protocol without any UI. The CLI uses it
to run headless and the tests use it to observe every host call.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from hyperchat.layout import ColumnLayout
    from hyperchat.presentation import Presence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Geometry:
    """Window frame in screen points."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class WindowStyle:
    """Visual style of a window frame."""

    titled: bool = True
    resizable: bool = True
    floating: bool = False
    has_shadow: bool = True
    opaque: bool = True


# Chrome-less floating style used in overlay mode
OVERLAY_STYLE = WindowStyle(
    titled=False,
    resizable=False,
    floating=True,
    has_shadow=False,
    opaque=False,
)


@dataclass(frozen=True)
class WindowInfo:
    """
    Snapshot of what the platform reports about a window.

    Attributes:
        window_id: Host identifier
        visible: Window is ordered in (not hidden)
        minimized: Window is minimized to the dock
        focused: Window is the key window of its process
        app_active: Owning process is the focused application
        joins_all_workspaces: Window is shown on every workspace
        platform_id: Native window number, used by workspace signals
    """

    window_id: str
    visible: bool = True
    minimized: bool = False
    focused: bool = False
    app_active: bool = False
    joins_all_workspaces: bool = False
    platform_id: int | None = None


class WindowHost(Protocol):
    """Operations the core performs on the desktop toolkit."""

    def create_window(self, geometry: Geometry) -> str: ...

    def destroy_window(self, window_id: str) -> None: ...

    def is_alive(self, window_id: str) -> bool: ...

    def geometry(self, window_id: str) -> Geometry: ...

    def style(self, window_id: str) -> WindowStyle: ...

    def workspace_frame(self) -> Geometry: ...

    async def animate(
        self,
        window_id: str,
        geometry: Geometry,
        style: WindowStyle,
        backdrop: bool,
    ) -> None: ...

    def apply(self, window_id: str, geometry: Geometry, style: WindowStyle) -> None: ...

    def focus(self, window_id: str) -> None: ...

    def set_presence(self, presence: "Presence") -> None: ...

    def create_chrome(self) -> object: ...

    def destroy_chrome(self, handle: object) -> None: ...

    def install_chrome(self, handle: object | None) -> None: ...

    def content_width(self, window_id: str) -> float: ...

    def apply_layout(self, window_id: str, layout: "ColumnLayout", animate: bool) -> None: ...

    def window_info(self, window_id: str) -> WindowInfo: ...

    def windows(self) -> list[str]: ...


@dataclass
class _WindowRecord:
    geometry: Geometry
    style: WindowStyle
    info: WindowInfo
    backdrop: bool = False
    layout: "ColumnLayout | None" = None
    layouts_applied: int = 0


@dataclass
class InMemoryWindowHost:
    """
    Window host without a UI.

    Windows are records in a dict, in creation order. Counters and call
    logs make the host's view of presence and chrome ownership observable.

    Attributes:
        screen: Workspace frame used for overlay mode
        animation_delay: Seconds each animate() call suspends
        presence_calls: Every presence passed to set_presence()
        chrome_created: Number of chrome handles created
        chrome_destroyed: Number of chrome handles destroyed
        installed_chrome: Handle currently installed, if any
        install_calls: Number of install_chrome() calls
    """

    screen: Geometry = field(default_factory=lambda: Geometry(0, 0, 1440, 900))
    animation_delay: float = 0.0
    presence_calls: list["Presence"] = field(default_factory=list)
    chrome_created: int = 0
    chrome_destroyed: int = 0
    installed_chrome: object | None = None
    install_calls: int = 0
    focused_window: str | None = None
    app_active: bool = True

    def __post_init__(self):
        self._windows: dict[str, _WindowRecord] = {}
        self._ids = itertools.count(1)

    # Window lifecycle

    def create_window(self, geometry: Geometry) -> str:
        window_id = f"window-{next(self._ids)}"
        self._windows[window_id] = _WindowRecord(
            geometry=geometry,
            style=WindowStyle(),
            info=WindowInfo(window_id=window_id, platform_id=len(self._windows) + 1),
        )
        logger.debug(f"Created {window_id} at {geometry}")
        return window_id

    def destroy_window(self, window_id: str) -> None:
        if self._windows.pop(window_id, None) is not None:
            logger.debug(f"Destroyed {window_id}")
        if self.focused_window == window_id:
            self.focused_window = None

    def is_alive(self, window_id: str) -> bool:
        return window_id in self._windows

    def windows(self) -> list[str]:
        return list(self._windows)

    # Geometry and style

    def geometry(self, window_id: str) -> Geometry:
        return self._record(window_id).geometry

    def style(self, window_id: str) -> WindowStyle:
        return self._record(window_id).style

    def backdrop(self, window_id: str) -> bool:
        return self._record(window_id).backdrop

    def workspace_frame(self) -> Geometry:
        return self.screen

    async def animate(
        self,
        window_id: str,
        geometry: Geometry,
        style: WindowStyle,
        backdrop: bool,
    ) -> None:
        await asyncio.sleep(self.animation_delay)
        if window_id in self._windows:
            self._windows[window_id].backdrop = backdrop

    def apply(self, window_id: str, geometry: Geometry, style: WindowStyle) -> None:
        record = self._record(window_id)
        record.geometry = geometry
        record.style = style

    # Focus and presence

    def focus(self, window_id: str) -> None:
        self._record(window_id)
        self.focused_window = window_id
        self.app_active = True

    def set_presence(self, presence: "Presence") -> None:
        self.presence_calls.append(presence)

    # Shared chrome

    def create_chrome(self) -> object:
        self.chrome_created += 1
        return object()

    def destroy_chrome(self, handle: object) -> None:
        self.chrome_destroyed += 1
        if self.installed_chrome is handle:
            self.installed_chrome = None

    def install_chrome(self, handle: object | None) -> None:
        self.install_calls += 1
        self.installed_chrome = handle

    # Layout

    def content_width(self, window_id: str) -> float:
        return self._record(window_id).geometry.width

    def apply_layout(self, window_id: str, layout: "ColumnLayout", animate: bool) -> None:
        if window_id not in self._windows:
            return
        record = self._windows[window_id]
        record.layout = layout
        record.layouts_applied += 1

    def layout(self, window_id: str) -> "ColumnLayout | None":
        return self._record(window_id).layout

    # Platform view

    def window_info(self, window_id: str) -> WindowInfo:
        record = self._record(window_id)
        return replace(
            record.info,
            focused=self.focused_window == window_id,
            app_active=self.app_active,
        )

    def set_window_info(self, window_id: str, **changes) -> None:
        record = self._record(window_id)
        record.info = replace(record.info, **changes)

    def _record(self, window_id: str) -> _WindowRecord:
        try:
            return self._windows[window_id]
        except KeyError:
            raise KeyError(f"Unknown window: {window_id}") from None