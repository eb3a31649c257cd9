"""
Session: one automated browsing context bound to one service.

A Session owns its engine exclusively, tracks readiness, and serializes
prompt submissions so that at most one prompt is in flight at a time.

Key components:
- ReadyState: INITIALIZING, READY or FAILED
- Session: warm-up, execute, crash recovery, hibernation and teardown

Lifecycle:
    INITIALIZING --warm-up ok--> READY
    INITIALIZING --timeout/error after one retry--> FAILED
    READY --strategy failed--> FAILED
    READY --engine crash--> INITIALIZING (one automatic reload) --> READY
    any --second crash--> FAILED

Callbacks and generations:
    Engine callbacks are wrapped with the session's generation at wiring
    time and marshalled onto the event loop. A callback whose generation
    no longer matches (the session was closed or rewired) is dropped.
    close() runs strictly stop -> detach callbacks -> release engine.
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from hyperchat.automation.base import (
    AutomationStrategy,
    FailureReason,
    StrategyOutcome,
)
from hyperchat.config.constants import (
    CRASH_RECOVERY_DELAY_SECONDS,
    MAX_CRASH_RECOVERIES,
    WARMUP_TIMEOUT_SECONDS,
)
from hyperchat.config.schema import ServiceDescriptor
from hyperchat.engine.base import BrowserEngine, EngineCallbacks
from hyperchat.engine.scripts import PAUSE_SCRIPT, RESUME_SCRIPT
from hyperchat.exceptions import (
    EngineError,
    HyperchatError,
    NavigationError,
    SelectorsExhausted,
    SessionCrashed,
    SessionWarmupTimeout,
    StrategyExecutionFailure,
    SubmitFailed,
)
from hyperchat.retry_config import create_session_retrying
from hyperchat.utils.time import seconds_since, utc_now

logger = logging.getLogger(__name__)

# Maps a failed outcome onto the error stored as the session's failure
FAILURE_ERRORS: dict[FailureReason, type[StrategyExecutionFailure]] = {
    FailureReason.SELECTORS_EXHAUSTED: SelectorsExhausted,
    FailureReason.SUBMIT_FAILED: SubmitFailed,
    FailureReason.NAVIGATION_ERROR: NavigationError,
    FailureReason.TIMEOUT: StrategyExecutionFailure,
}


class ReadyState(str, Enum):
    """Readiness of a session."""

    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


StateListener = Callable[["Session"], None]


class Session:
    """
    One isolated, automated browsing context bound to a single service.

    Attributes:
        descriptor: Service this session is bound to
        engine: Exclusively owned browsing engine
        strategy: Strategy used for the first prompt of a conversation
        follow_up_strategy: Strategy used for later prompts (reply to all),
            None to always use `strategy`
        ready_state: Current readiness
        current_prompt: Prompt being submitted right now, if any
        generation: Callback generation; bumped on close
        failure: Error that put the session into FAILED, if any
        last_outcome: Outcome of the most recent submission
        paused: Page timers are suspended (window hibernated)
    """

    def __init__(
        self,
        descriptor: ServiceDescriptor,
        engine: BrowserEngine,
        strategy: AutomationStrategy,
        *,
        follow_up_strategy: AutomationStrategy | None = None,
        generation: int = 0,
        on_state_change: StateListener | None = None,
    ):
        self.descriptor = descriptor
        self.engine = engine
        self.strategy = strategy
        self.follow_up_strategy = follow_up_strategy
        self.ready_state = ReadyState.INITIALIZING
        self.current_prompt: str | None = None
        self.generation = generation
        self.failure: HyperchatError | None = None
        self.last_outcome: StrategyOutcome | None = None
        self.paused = False

        self._on_state_change = on_state_change
        self._dispatch_lock = asyncio.Lock()
        self._crash_recoveries = 0
        self._interrupted_prompt: str | None = None
        self._recovery_task: asyncio.Task | None = None
        self._closed = False
        self._loop = asyncio.get_running_loop()

        self._attach_callbacks()

    @property
    def service_id(self) -> str:
        return self.descriptor.id

    @property
    def is_settled(self) -> bool:
        """True once the session is READY or FAILED."""
        return self.ready_state is not ReadyState.INITIALIZING

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Callback wiring
    # ------------------------------------------------------------------

    def _attach_callbacks(self) -> None:
        generation = self.generation
        self.engine.set_callbacks(
            EngineCallbacks(
                on_crash=self._marshal(generation, self._handle_crash),
                on_closed=self._marshal(generation, self._handle_engine_closed),
            )
        )

    def _marshal(self, generation: int, handler: Callable[[], None]) -> Callable[[], None]:
        """Wrap handler so it runs on the event loop, for this generation only."""
        loop = self._loop

        def callback() -> None:
            loop.call_soon_threadsafe(self._deliver, generation, handler)

        return callback

    def _deliver(self, generation: int, handler: Callable[[], None]) -> None:
        if self._closed or generation != self.generation:
            logger.debug(
                f"[{self.service_id}] Dropped stale callback "
                f"(generation {generation}, current {self.generation})"
            )
            return
        handler()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _set_state(self, state: ReadyState) -> None:
        if state is self.ready_state:
            return
        previous = self.ready_state
        self.ready_state = state
        logger.info(f"[{self.service_id}] {previous.value} -> {state.value}")
        if self._on_state_change is not None:
            self._on_state_change(self)

    def _fail(self, error: HyperchatError) -> None:
        self.failure = error
        logger.warning(f"[{self.service_id}] Session failed: {error}")
        self._set_state(ReadyState.FAILED)

    # ------------------------------------------------------------------
    # Warm-up
    # ------------------------------------------------------------------

    async def warm_up(self) -> ReadyState:
        """
        Pre-navigate to the service's home page.

        Each attempt is bounded by WARMUP_TIMEOUT_SECONDS; a timeout or
        navigation error is retried exactly once before the session is
        marked FAILED.

        Returns:
            ReadyState: READY or FAILED (unchanged if the session is closed)
        """
        if self._closed:
            return self.ready_state

        self._set_state(ReadyState.INITIALIZING)
        started = utc_now()
        home_url = self.descriptor.home_url
        logger.info(f"[{self.service_id}] Warming up: {home_url}")

        try:
            async for attempt in create_session_retrying((NavigationError, TimeoutError)):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(f"[{self.service_id}] Retrying warm-up")
                    await asyncio.wait_for(
                        self.engine.navigate(home_url),
                        timeout=WARMUP_TIMEOUT_SECONDS,
                    )
        except TimeoutError:
            if not self._closed:
                self._fail(
                    SessionWarmupTimeout(
                        self.service_id,
                        f"home page did not load within {WARMUP_TIMEOUT_SECONDS}s",
                    )
                )
            return self.ready_state
        except (NavigationError, EngineError) as e:
            if not self._closed:
                self._fail(
                    e
                    if isinstance(e, NavigationError)
                    else NavigationError(self.service_id, str(e))
                )
            return self.ready_state

        if self._closed:
            return self.ready_state

        self.failure = None
        self._set_state(ReadyState.READY)
        logger.info(
            f"[{self.service_id}] Ready after {seconds_since(started):.1f}s"
        )
        return self.ready_state

    async def reload(self) -> ReadyState:
        """User-initiated reload: clear failures and warm up again."""
        self._crash_recoveries = 0
        self.paused = False
        return await self.warm_up()

    # ------------------------------------------------------------------
    # Prompt submission
    # ------------------------------------------------------------------

    async def execute(self, prompt: str, follow_up: bool = False) -> StrategyOutcome:
        """
        Submit a prompt through this session's strategy.

        Prompts queue on a per-session lock: a new prompt waits until the
        previous submission has finished instead of interrupting it.

        Args:
            prompt: Raw prompt text
            follow_up: Use the follow-up strategy (continue the open
                conversation) when one is configured

        Returns:
            StrategyOutcome: exactly one outcome; a failure marks the
            session FAILED
        """
        async with self._dispatch_lock:
            strategy = self.strategy
            if follow_up and self.follow_up_strategy is not None:
                strategy = self.follow_up_strategy

            if self._closed or self.ready_state is not ReadyState.READY:
                outcome = StrategyOutcome.failure(
                    self.service_id,
                    strategy.kind(),
                    FailureReason.SUBMIT_FAILED,
                    f"session is {'closed' if self._closed else self.ready_state.value}",
                )
                self.last_outcome = outcome
                return outcome

            if self.paused:
                await self.resume()

            self.current_prompt = prompt
            try:
                outcome = await strategy.execute(self.engine, prompt)
            finally:
                self.current_prompt = None

            self.last_outcome = outcome
            if outcome.failed and not self._closed:
                self._fail(self._failure_error(outcome))

            return outcome

    def _failure_error(self, outcome: StrategyOutcome) -> StrategyExecutionFailure:
        if outcome.reason is None:
            return StrategyExecutionFailure(
                self.service_id, outcome.detail or "strategy failed without a reason"
            )
        error_class = FAILURE_ERRORS[outcome.reason]
        return error_class(self.service_id, outcome.detail or outcome.reason.value)

    # ------------------------------------------------------------------
    # Crash handling
    # ------------------------------------------------------------------

    def _handle_crash(self) -> None:
        if self._crash_recoveries >= MAX_CRASH_RECOVERIES:
            self._fail(
                SessionCrashed(self.service_id, "engine crashed again after automatic reload")
            )
            return

        self._crash_recoveries += 1
        self._interrupted_prompt = self.current_prompt
        logger.warning(
            f"[{self.service_id}] Engine crashed, reloading in "
            f"{CRASH_RECOVERY_DELAY_SECONDS}s"
        )
        self._set_state(ReadyState.INITIALIZING)
        self._recovery_task = asyncio.create_task(self._recover_from_crash(self.generation))

    async def _recover_from_crash(self, generation: int) -> None:
        await asyncio.sleep(CRASH_RECOVERY_DELAY_SECONDS)
        if self._closed or generation != self.generation:
            return

        state = await self.warm_up()
        prompt, self._interrupted_prompt = self._interrupted_prompt, None
        if state is ReadyState.READY and prompt is not None:
            logger.info(f"[{self.service_id}] Retrying prompt interrupted by crash")
            await self.execute(prompt)

    def _handle_engine_closed(self) -> None:
        self._fail(SessionCrashed(self.service_id, "page was closed unexpectedly"))

    # ------------------------------------------------------------------
    # Hibernation
    # ------------------------------------------------------------------

    async def pause(self) -> None:
        """Suspend page timers and animations while the window is inactive."""
        if self._closed or self.paused or self.ready_state is not ReadyState.READY:
            return
        try:
            await self.engine.evaluate(PAUSE_SCRIPT)
        except EngineError as e:
            logger.debug(f"[{self.service_id}] Could not pause page: {e}")
            return
        self.paused = True

    async def resume(self) -> None:
        """Restore page timers and animations."""
        if self._closed or not self.paused:
            return
        self.paused = False
        try:
            await self.engine.evaluate(RESUME_SCRIPT)
        except EngineError as e:
            logger.debug(f"[{self.service_id}] Could not resume page: {e}")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """
        Tear the session down: stop, detach callbacks, release the engine.

        Idempotent. Callbacks fired during or after teardown are dropped.
        """
        if self._closed:
            return
        self._closed = True

        if self._recovery_task is not None and not self._recovery_task.done():
            self._recovery_task.cancel()

        try:
            await self.engine.stop()
        except EngineError as e:
            logger.debug(f"[{self.service_id}] stop() failed during teardown: {e}")

        self.generation += 1
        self.engine.clear_callbacks()

        await self.engine.close()
        self.current_prompt = None
        logger.info(f"[{self.service_id}] Session closed")

    def status(self) -> dict[str, Any]:
        """Per-session status for display."""
        return {
            "service_id": self.service_id,
            "name": self.descriptor.name,
            "state": self.ready_state.value,
            "strategy": self.descriptor.strategy,
            "paused": self.paused,
            "error": str(self.failure) if self.failure else None,
            "submitted": (
                None if self.last_outcome is None else self.last_outcome.submitted
            ),
        }
