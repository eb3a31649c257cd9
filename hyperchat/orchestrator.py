"""
Orchestrator: owns and coordinates all sessions of one conversation window.

Responsibilities:
- Create one Session per service and warm it up before any prompt exists
- Track aggregate readiness ("all settled": no session still initializing)
- Buffer a prompt submitted before readiness in a single pending slot
  (last write wins) and dispatch it automatically once everything settled
- Fan a prompt out to every READY session concurrently, isolating failures
- Notify listeners (column layout) whenever the session set changes
- Tear every session down when the window closes

All methods run on the event loop; none of them blocks waiting for a
session. Fan-out across sessions carries no ordering guarantee, each
session serializes its own prompts.

Example:
    >>> orchestrator = Orchestrator(pool, window_id="window-1")
    >>> await orchestrator.start(config.enabled_services())
    >>> orchestrator.execute("Compare Rust and Go")  # buffered until ready
    >>> await orchestrator.wait_until_ready()
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from hyperchat.automation import StrategyRegistry
from hyperchat.automation.base import FailureReason, StrategyOutcome
from hyperchat.config.constants import MAX_PROMPT_LENGTH
from hyperchat.config.schema import ServiceDescriptor
from hyperchat.engine.base import EngineFactory
from hyperchat.exceptions import EngineError, HyperchatError, PromptValidationError
from hyperchat.session import ReadyState, Session
from hyperchat.utils.logging import log_with_context

logger = logging.getLogger(__name__)

SessionSetListener = Callable[[list[Session]], None]


def validate_prompt(prompt: str) -> str:
    """
    Validate a prompt before it is buffered or dispatched.

    Args:
        prompt: Prompt text as entered by the user

    Returns:
        str: The prompt, unchanged

    Raises:
        PromptValidationError: If empty, whitespace only, or too long
    """
    if not isinstance(prompt, str) or not prompt.strip():
        raise PromptValidationError("Prompt cannot be empty")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise PromptValidationError(
            f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH:,} characters"
        )
    return prompt


class Orchestrator:
    """
    Coordinates the sessions of one window.

    Attributes:
        window_id: Identifier of the owning window (used in logs)
        reply_to_all: Continue open conversations for follow-up prompts
        pending_prompt: Prompt waiting for readiness, if any
    """

    def __init__(
        self,
        engine_factory: EngineFactory,
        *,
        window_id: str = "window",
        reply_to_all: bool = True,
    ):
        self.window_id = window_id
        self.reply_to_all = reply_to_all
        self.pending_prompt: str | None = None

        self._engine_factory = engine_factory
        self._sessions: dict[str, Session] = {}
        self._adding: dict[str, asyncio.Task] = {}
        self._listeners: list[SessionSetListener] = []
        self._warmup_tasks: set[asyncio.Task] = set()
        self._dispatch_tasks: set[asyncio.Task] = set()
        self._ready_event = asyncio.Event()
        self._generation = 0
        self._dispatch_count = 0
        self._closed = False

    # ------------------------------------------------------------------
    # Session set
    # ------------------------------------------------------------------

    @property
    def sessions(self) -> list[Session]:
        """Sessions in column order."""
        return sorted(
            self._sessions.values(),
            key=lambda session: (session.descriptor.order, session.service_id),
        )

    def get_session(self, service_id: str) -> Session | None:
        return self._sessions.get(service_id)

    @property
    def all_ready(self) -> bool:
        """True when at least one session exists and none is initializing."""
        return bool(self._sessions) and all(
            session.is_settled for session in self._sessions.values()
        )

    @property
    def is_closed(self) -> bool:
        return self._closed

    def on_session_set_changed(self, listener: SessionSetListener) -> Callable[[], None]:
        """
        Subscribe to session set changes.

        Returns:
            Callable that unsubscribes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify_session_set_changed(self) -> None:
        sessions = self.sessions
        for listener in list(self._listeners):
            listener(sessions)

    async def start(self, services: Iterable[ServiceDescriptor]) -> list[Session]:
        """
        Create and warm sessions for services, in column order.

        A service whose engine cannot be created is logged and skipped; the
        others still start. Closing the orchestrator part-way stops the
        loop and returns what was created so far.

        Returns:
            list[Session]: Sessions that were created
        """
        created = []
        for descriptor in sorted(services, key=lambda s: (s.order, s.id)):
            if self._closed:
                break
            try:
                created.append(await self.add_session(descriptor))
            except EngineError as e:
                logger.error(f"[{descriptor.id}] Could not create session: {e}")
            except (HyperchatError, asyncio.CancelledError):
                if not self._closed or self._caller_cancelled():
                    raise
                break

        if self._closed:
            logger.info(f"{self.window_id} closed during startup, stopped creating sessions")
        return created

    @staticmethod
    def _caller_cancelled() -> bool:
        task = asyncio.current_task()
        return task is not None and task.cancelling() > 0

    async def add_session(self, descriptor: ServiceDescriptor) -> Session:
        """
        Create a session for a service and start its warm-up.

        Idempotent per service id: a second call (even while the first is
        still creating the engine) returns the same session.

        Raises:
            HyperchatError: If the orchestrator is closed
            EngineError: If the engine cannot be created
        """
        if self._closed:
            raise HyperchatError(f"Orchestrator for {self.window_id} is closed")

        existing = self._sessions.get(descriptor.id)
        if existing is not None:
            return existing

        task = self._adding.get(descriptor.id)
        if task is None:
            task = asyncio.create_task(self._create_session(descriptor))
            self._adding[descriptor.id] = task
            task.add_done_callback(lambda _: self._adding.pop(descriptor.id, None))

        return await asyncio.shield(task)

    async def _create_session(self, descriptor: ServiceDescriptor) -> Session:
        engine = await self._engine_factory.create_engine(descriptor)
        if self._closed:
            await engine.close()
            raise HyperchatError(f"Orchestrator for {self.window_id} is closed")

        strategy = StrategyRegistry.create_strategy(descriptor.strategy, descriptor)
        follow_up = None
        if self.reply_to_all:
            follow_up = StrategyRegistry.create_strategy(
                "simulated_input", descriptor, follow_up=True
            )

        self._generation += 1
        session = Session(
            descriptor,
            engine,
            strategy,
            follow_up_strategy=follow_up,
            generation=self._generation,
            on_state_change=self._on_session_state_change,
        )
        self._sessions[descriptor.id] = session
        self._ready_event.clear()

        task = asyncio.create_task(session.warm_up())
        self._warmup_tasks.add(task)
        task.add_done_callback(self._warmup_tasks.discard)

        log_with_context(
            logger,
            logging.INFO,
            f"Added session: {descriptor.id}",
            context={"strategy": descriptor.strategy, "order": descriptor.order},
            window_id=self.window_id,
        )
        self._notify_session_set_changed()
        return session

    async def remove_session(self, service_id: str) -> bool:
        """
        Tear down one session and reflow the remaining ones.

        Returns:
            bool: True if a session was removed
        """
        session = self._sessions.pop(service_id, None)
        if session is None:
            return False

        await session.close()
        log_with_context(
            logger,
            logging.INFO,
            f"Removed session: {service_id}",
            context={"remaining": len(self._sessions)},
            window_id=self.window_id,
        )
        self._notify_session_set_changed()
        self._check_readiness()
        return True

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    def _on_session_state_change(self, session: Session) -> None:
        if session.service_id not in self._sessions:
            return
        if session.ready_state is ReadyState.INITIALIZING:
            self._ready_event.clear()
        self._check_readiness()

    def _check_readiness(self) -> None:
        if self._closed or not self.all_ready:
            return

        self._ready_event.set()
        if self.pending_prompt is not None:
            prompt, self.pending_prompt = self.pending_prompt, None
            log_with_context(
                logger,
                logging.INFO,
                "All sessions settled, dispatching buffered prompt",
                window_id=self.window_id,
            )
            self._start_dispatch(prompt)

    async def wait_until_ready(self, timeout: float | None = None) -> bool:
        """
        Wait until every session has settled.

        Returns:
            bool: False if the timeout expired first
        """
        try:
            await asyncio.wait_for(self._ready_event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def execute(self, prompt: str) -> asyncio.Task | None:
        """
        Submit a prompt to every session.

        Before readiness the prompt replaces any pending prompt and None is
        returned. Once all sessions settled, dispatch starts immediately.

        Args:
            prompt: Non-empty prompt text

        Returns:
            asyncio.Task resolving to the list of outcomes, or None if the
            prompt was buffered

        Raises:
            PromptValidationError: If the prompt is empty or too long
            HyperchatError: If the orchestrator is closed
        """
        validate_prompt(prompt)
        if self._closed:
            raise HyperchatError(f"Orchestrator for {self.window_id} is closed")

        if not self.all_ready:
            if self.pending_prompt is not None:
                logger.info("Replacing pending prompt with a newer one")
            self.pending_prompt = prompt
            log_with_context(
                logger,
                logging.INFO,
                "Sessions not ready, prompt buffered",
                context={
                    "initializing": [
                        s.service_id for s in self.sessions if not s.is_settled
                    ]
                },
                window_id=self.window_id,
            )
            return None

        return self._start_dispatch(prompt)

    def _start_dispatch(self, prompt: str) -> asyncio.Task:
        follow_up = self.reply_to_all and self._dispatch_count > 0
        self._dispatch_count += 1

        task = asyncio.create_task(self.dispatch(prompt, follow_up=follow_up))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._dispatch_tasks.discard)
        return task

    async def dispatch(self, prompt: str, follow_up: bool = False) -> list[StrategyOutcome]:
        """
        Fan a prompt out to every READY session concurrently.

        A failure in one session is logged and reported in its outcome;
        it never prevents delivery to the others.

        Args:
            prompt: Prompt text
            follow_up: Continue the open conversations (reply to all)

        Returns:
            list[StrategyOutcome]: One outcome per targeted session
        """
        targets = [s for s in self.sessions if s.ready_state is ReadyState.READY]
        if not targets:
            logger.warning("No ready sessions, prompt dropped")
            return []

        results = await asyncio.gather(
            *(session.execute(prompt, follow_up=follow_up) for session in targets),
            return_exceptions=True,
        )

        outcomes: list[StrategyOutcome] = []
        for session, result in zip(targets, results, strict=True):
            if isinstance(result, StrategyOutcome):
                outcomes.append(result)
                continue
            if not isinstance(result, Exception):
                raise result
            logger.error(
                f"[{session.service_id}] Unexpected dispatch error: {result}",
                exc_info=result,
            )
            outcomes.append(
                StrategyOutcome.failure(
                    session.service_id,
                    session.descriptor.strategy,
                    FailureReason.SUBMIT_FAILED,
                    str(result),
                )
            )

        submitted = sum(1 for outcome in outcomes if outcome.submitted)
        log_with_context(
            logger,
            logging.INFO,
            f"Prompt dispatched to {submitted}/{len(outcomes)} session(s)",
            context={
                "follow_up": follow_up,
                "failed": [o.service_id for o in outcomes if o.failed],
            },
            window_id=self.window_id,
        )
        return outcomes

    async def wait_for_dispatches(self) -> None:
        """Wait until every running dispatch has finished."""
        while self._dispatch_tasks:
            await asyncio.gather(*list(self._dispatch_tasks), return_exceptions=True)

    def new_thread(self) -> None:
        """Make the next prompt start new conversations everywhere."""
        self._dispatch_count = 0
        logger.info("Next prompt starts a new conversation")

    async def reload_all(self) -> None:
        """Reload every session (including FAILED ones) from its home page."""
        self.new_thread()
        self._ready_event.clear()
        await asyncio.gather(*(session.reload() for session in self.sessions))

    # ------------------------------------------------------------------
    # Hibernation
    # ------------------------------------------------------------------

    async def hibernate(self) -> None:
        """Suspend page timers in every session (window lost focus)."""
        await asyncio.gather(*(session.pause() for session in self.sessions))

    async def wake(self) -> None:
        """Resume page timers in every session (window gained focus)."""
        await asyncio.gather(*(session.resume() for session in self.sessions))

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """
        Stop all activity and release every session. Idempotent.

        In-flight warm-ups and dispatches are cancelled before sessions are
        torn down, so no session callback can outlive its window.
        """
        if self._closed:
            return
        self._closed = True
        self.pending_prompt = None

        running = [*self._warmup_tasks, *self._dispatch_tasks, *self._adding.values()]
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)

        sessions = list(self._sessions.values())
        self._sessions.clear()
        await asyncio.gather(*(session.close() for session in sessions))
        self._listeners.clear()

        log_with_context(
            logger,
            logging.INFO,
            f"Closed {len(sessions)} session(s)",
            window_id=self.window_id,
        )

    def status(self) -> list[dict[str, Any]]:
        """Per-session status in column order."""
        return [session.status() for session in self.sessions]
