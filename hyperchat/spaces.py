"""
Workspace (virtual desktop) resolution for entry actions.

When the user summons Hyperchat, the entry point must decide between
focusing an existing conversation window and opening a new one. Focusing a
window that lives on another workspace would yank the user over there, so
a window only qualifies when it is on the workspace the user is looking at.

Membership is computed on demand for every query and never cached:
windows move between workspaces without notifying the core.

Resolution order for one window:
1. Windows that join all workspaces always count
2. The platform WorkspaceSignal, when one is configured and answers
3. Conservative fallback: only the focused window of the focused
   application counts (a visible but unfocused window does not)
"""

import asyncio
import json
import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from hyperchat.config.constants import WORKSPACE_QUERY_TIMEOUT_SECONDS
from hyperchat.exceptions import SpaceDetectionUnavailable
from hyperchat.windows import WindowInfo

logger = logging.getLogger(__name__)


class WorkspaceSignal(Protocol):
    """Platform source of truth for workspace membership."""

    async def is_on_active_workspace(self, window: WindowInfo) -> bool:
        """
        Raises:
            SpaceDetectionUnavailable: If the platform cannot answer
        """
        ...


@dataclass(frozen=True)
class FocusExisting:
    """Entry action: bring this window to the front."""

    window_id: str


@dataclass(frozen=True)
class OpenNew:
    """Entry action: open a new conversation window here."""


EntryAction = FocusExisting | OpenNew


class SpaceResolver:
    """
    Decides which window, if any, an entry action should target.

    Attributes:
        signal: Platform workspace signal, None to always use the fallback
    """

    def __init__(self, signal: WorkspaceSignal | None = None):
        self.signal = signal

    async def is_on_current_workspace(self, window: WindowInfo) -> bool:
        if window.joins_all_workspaces:
            return True

        if self.signal is not None:
            try:
                return await self.signal.is_on_active_workspace(window)
            except SpaceDetectionUnavailable as e:
                logger.debug(f"Workspace signal unavailable, using focus heuristic: {e}")

        return window.focused and window.app_active

    async def resolve_entry_action(self, windows: Sequence[WindowInfo]) -> EntryAction:
        """
        Pick the first visible, non-minimized window on the current workspace.

        Args:
            windows: Candidate windows, most preferred first

        Returns:
            FocusExisting for that window, or OpenNew if none qualifies
        """
        for window in windows:
            if not window.visible or window.minimized:
                continue
            if await self.is_on_current_workspace(window):
                logger.debug(f"Entry action: focus {window.window_id}")
                return FocusExisting(window.window_id)

        logger.debug("Entry action: open new window")
        return OpenNew()


class YabaiWorkspaceSignal:
    """
    Workspace signal backed by the yabai window manager CLI.

    Queries the focused space and checks whether the window's native id is
    listed in it. Every failure (yabai missing, non-zero exit, timeout,
    malformed output, window without a native id) raises
    SpaceDetectionUnavailable so the resolver falls back.
    """

    def __init__(self, yabai_path: str | None = None, timeout: float = WORKSPACE_QUERY_TIMEOUT_SECONDS):
        self.yabai_path = yabai_path or shutil.which("yabai")
        self.timeout = timeout

    async def is_on_active_workspace(self, window: WindowInfo) -> bool:
        if window.platform_id is None:
            raise SpaceDetectionUnavailable(f"{window.window_id} has no native window id")

        space = await self._query(["-m", "query", "--spaces", "--space"])
        if not isinstance(space, dict) or not isinstance(space.get("windows"), list):
            raise SpaceDetectionUnavailable("Unexpected yabai space payload")
        return window.platform_id in space["windows"]

    async def _query(self, args: list[str]) -> object:
        if not self.yabai_path:
            raise SpaceDetectionUnavailable("yabai is not installed")

        try:
            process = await asyncio.create_subprocess_exec(
                self.yabai_path,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SpaceDetectionUnavailable(f"Could not run yabai: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise SpaceDetectionUnavailable(f"yabai did not answer within {self.timeout}s") from e

        if process.returncode != 0:
            raise SpaceDetectionUnavailable(
                f"yabai exited with {process.returncode}: {stderr.decode(errors='replace').strip()}"
            )

        try:
            return json.loads(stdout.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SpaceDetectionUnavailable(f"Could not parse yabai output: {e}") from e
