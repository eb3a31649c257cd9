"""
Application wiring: entry-point events routed into the runtime core.

Hyperchat connects the pieces that each know only their own concern:

- PresentationController opens windows and tracks presence
- One Orchestrator (and ColumnLayoutManager) per conversation window
- SpaceResolver decides whether an entry action reuses a window on the
  current workspace or opens a new one
- Focus changes hibernate the sessions of every other window

Entry points (global hotkey, floating button, CLI) only call
request_prompt(), activate() and dismiss().

Example:
    >>> app = Hyperchat(config, pool, InMemoryWindowHost())
    >>> window_id = await app.request_prompt("Compare Rust and Go")
    >>> await app.orchestrators[window_id].wait_until_ready()
    >>> await app.shutdown()
"""

import asyncio
import logging
from typing import Any

from hyperchat.config.constants import BACKGROUND_DEBOUNCE_SECONDS
from hyperchat.config.schema import HyperchatConfig
from hyperchat.engine.base import EngineFactory
from hyperchat.layout import ColumnLayoutManager
from hyperchat.orchestrator import Orchestrator, validate_prompt
from hyperchat.presentation import DisplayMode, PresentationController
from hyperchat.spaces import FocusExisting, SpaceResolver, WorkspaceSignal
from hyperchat.windows import WindowHost, WindowInfo

logger = logging.getLogger(__name__)


class Hyperchat:
    """
    Owns the presentation controller and every window's orchestrator.

    Attributes:
        config: Validated configuration
        host: Window host
        controller: Presentation state machine
        resolver: Workspace resolver for entry actions
        orchestrators: Orchestrator per window id
        layouts: Column layout manager per window id
    """

    def __init__(
        self,
        config: HyperchatConfig,
        engine_factory: EngineFactory,
        host: WindowHost,
        *,
        workspace_signal: WorkspaceSignal | None = None,
        background_debounce: float = BACKGROUND_DEBOUNCE_SECONDS,
    ):
        self.config = config
        self.host = host
        self._engine_factory = engine_factory
        self.controller = PresentationController(
            host,
            on_window_opened=self._open_window,
            default_size=(config.window.width, config.window.height),
            background_debounce=background_debounce,
        )
        self.resolver = SpaceResolver(workspace_signal)
        self.orchestrators: dict[str, Orchestrator] = {}
        self.layouts: dict[str, ColumnLayoutManager] = {}

    # ------------------------------------------------------------------
    # Entry-point events
    # ------------------------------------------------------------------

    async def request_prompt(self, prompt: str) -> str:
        """
        Send a prompt to a window on the current workspace, opening one if needed.

        Returns:
            str: Id of the window that received the prompt

        Raises:
            PromptValidationError: If the prompt is empty or too long
        """
        validate_prompt(prompt)
        action = await self.resolver.resolve_entry_action(self._candidate_windows())

        if isinstance(action, FocusExisting):
            window_id = action.window_id
            logger.info(f"Sending prompt to existing {window_id}")
            await self._focus(window_id)
            self.orchestrators[window_id].execute(prompt)
            return window_id

        return await self.controller.show(prompt)

    async def activate(self) -> str:
        """Bring a window on the current workspace forward, or open a new one."""
        action = await self.resolver.resolve_entry_action(self._candidate_windows())
        if isinstance(action, FocusExisting):
            await self._focus(action.window_id)
            return action.window_id
        return await self.controller.show()

    async def dismiss(self) -> bool:
        """
        Leave overlay mode on the active window.

        Returns:
            bool: True if a window left overlay; False when nothing to dismiss
        """
        window_id = self.controller.active_window
        if window_id is None or self.controller.display_mode(window_id) is not DisplayMode.OVERLAY:
            return False
        return await self.controller.exit_overlay(window_id)

    # ------------------------------------------------------------------
    # Window lifecycle
    # ------------------------------------------------------------------

    async def _open_window(self, window_id: str, prompt: str | None) -> None:
        orchestrator = Orchestrator(
            self._engine_factory,
            window_id=window_id,
            reply_to_all=self.config.reply_to_all,
        )
        layout = ColumnLayoutManager(self.host, window_id)
        orchestrator.on_session_set_changed(layout.on_session_set_changed)
        self.orchestrators[window_id] = orchestrator
        self.layouts[window_id] = layout

        await self._hibernate_others(window_id)
        await orchestrator.start(self.config.enabled_services())
        if orchestrator.is_closed:
            logger.info(f"{window_id} was closed while starting, prompt dropped")
            return
        if prompt is not None:
            orchestrator.execute(prompt)

    async def window_focused(self, window_id: str) -> None:
        """Host event: a window became key. Wakes it and hibernates the rest."""
        if window_id not in self.orchestrators:
            logger.debug(f"Ignoring focus event for closed window {window_id}")
            return
        self.controller.window_became_focused(window_id)
        await self._hibernate_others(window_id)

    async def close_window(self, window_id: str) -> None:
        """
        Close a conversation window.

        Sessions are torn down before the host window is destroyed.
        """
        orchestrator = self.orchestrators.pop(window_id, None)
        self.layouts.pop(window_id, None)
        if orchestrator is not None:
            await orchestrator.close()
        self.host.destroy_window(window_id)
        self.controller.window_closed(window_id)

    async def shutdown(self) -> None:
        """Close every window and release the engine pool."""
        for window_id in list(self.orchestrators):
            await self.close_window(window_id)
        self.controller.close()
        await self._engine_factory.close()
        logger.info("Hyperchat shut down")

    def status(self) -> dict[str, list[dict[str, Any]]]:
        return {
            window_id: orchestrator.status()
            for window_id, orchestrator in self.orchestrators.items()
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _focus(self, window_id: str) -> None:
        self.host.focus(window_id)
        await self.window_focused(window_id)

    async def _hibernate_others(self, window_id: str) -> None:
        tasks = []
        for other_id, orchestrator in self.orchestrators.items():
            if other_id == window_id:
                tasks.append(orchestrator.wake())
            else:
                tasks.append(orchestrator.hibernate())
        await asyncio.gather(*tasks)

    def _candidate_windows(self) -> list[WindowInfo]:
        """Known windows, the active one first, then most recently opened."""
        window_ids = [w for w in reversed(self.controller.windows) if self.host.is_alive(w)]
        active = self.controller.active_window
        if active in window_ids:
            window_ids.remove(active)
            window_ids.insert(0, active)
        return [self.host.window_info(window_id) for window_id in window_ids]
