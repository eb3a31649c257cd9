"""
Tests for the session module.

Tests cover:
- Warm-up: READY on success, one retry, FAILED on timeout/navigation error
- execute(): strategy selection, FAILED on failure, refusal when not READY
- Per-session serialization (one prompt in flight)
- Crash recovery: one reload + interrupted prompt retried, then FAILED
- Stale callbacks dropped after close (generation check)
- Teardown order stop -> clear_callbacks -> close
- Hibernation scripts
"""

import asyncio

import pytest

from hyperchat.automation import FailureReason, SimulatedInputStrategy, UrlParameterStrategy
from hyperchat.automation.base import StrategyOutcome
from hyperchat.engine.scripts import PAUSE_SCRIPT, RESUME_SCRIPT
from hyperchat.exceptions import (
    NavigationError,
    SelectorsExhausted,
    SessionCrashed,
    SessionWarmupTimeout,
    StrategyExecutionFailure,
)
from hyperchat.session import ReadyState, Session
from tests.fakes import FakeEngine, dom_for, make_service

# ============================================================================
# Helpers
# ============================================================================


def url_session(engine=None, **kwargs):
    service = make_service("chatgpt")
    engine = engine or FakeEngine("chatgpt")
    return Session(service, engine, UrlParameterStrategy(service), **kwargs), engine


def input_session(dom=None):
    service = make_service("claude", strategy="simulated_input")
    engine = FakeEngine("claude", dom=dom if dom is not None else dom_for(service))
    return Session(service, engine, SimulatedInputStrategy(service)), engine


async def settle():
    """Let callbacks marshalled with call_soon_threadsafe run."""
    for _ in range(3):
        await asyncio.sleep(0)


# ============================================================================
# Warm-up
# ============================================================================


class TestWarmUp:
    """Test Session.warm_up()."""

    @pytest.mark.asyncio
    async def test_warm_up_ready(self):
        """A successful home page load makes the session READY."""
        session, engine = url_session()

        assert session.ready_state is ReadyState.INITIALIZING
        assert await session.warm_up() is ReadyState.READY
        assert engine.navigations == ["https://chatgpt.example.com/chat"]
        assert session.is_settled is True

    @pytest.mark.asyncio
    async def test_warm_up_retries_once(self):
        """One navigation failure is retried."""
        session, engine = url_session(FakeEngine("chatgpt", navigation_failures=1))

        assert await session.warm_up() is ReadyState.READY
        assert len(engine.navigations) == 2

    @pytest.mark.asyncio
    async def test_warm_up_navigation_error_fails(self):
        """Two navigation failures mark the session FAILED."""
        session, engine = url_session(FakeEngine("chatgpt", navigation_failures=2))

        assert await session.warm_up() is ReadyState.FAILED
        assert isinstance(session.failure, NavigationError)
        assert len(engine.navigations) == 2

    @pytest.mark.asyncio
    async def test_warm_up_timeout(self, monkeypatch):
        """A hanging load times out twice and raises no exception."""
        monkeypatch.setattr("hyperchat.session.WARMUP_TIMEOUT_SECONDS", 0.05)
        session, engine = url_session(FakeEngine("chatgpt", hang_navigation=True))

        assert await session.warm_up() is ReadyState.FAILED
        assert isinstance(session.failure, SessionWarmupTimeout)
        assert "[chatgpt]" in str(session.failure)
        assert len(engine.navigations) == 2

    @pytest.mark.asyncio
    async def test_state_listener_notified(self):
        """The state listener sees every transition."""
        seen = []
        session, _ = url_session(on_state_change=lambda s: seen.append(s.ready_state))

        await session.warm_up()

        assert seen == [ReadyState.READY]


# ============================================================================
# execute
# ============================================================================


class TestExecute:
    """Test Session.execute()."""

    @pytest.mark.asyncio
    async def test_execute_when_ready(self):
        """A READY session runs its strategy with the exact prompt."""
        session, engine = url_session()
        await session.warm_up()

        outcome = await session.execute("test query")

        assert outcome.submitted is True
        assert engine.navigations[-1] == "https://chatgpt.example.com/chat?q=test%20query"
        assert session.last_outcome is outcome
        assert session.current_prompt is None

    @pytest.mark.asyncio
    async def test_execute_refused_when_initializing(self):
        """A session that is not READY reports Failed without touching the engine."""
        session, engine = url_session()

        outcome = await session.execute("hello")

        assert outcome.reason is FailureReason.SUBMIT_FAILED
        assert "initializing" in outcome.detail
        assert engine.navigations == []

    @pytest.mark.asyncio
    async def test_failure_marks_session_failed(self):
        """Failed(SELECTORS_EXHAUSTED) marks the session FAILED."""
        session, _ = input_session(dom={})
        await session.warm_up()

        outcome = await session.execute("hello")

        assert outcome.reason is FailureReason.SELECTORS_EXHAUSTED
        assert session.ready_state is ReadyState.FAILED
        assert isinstance(session.failure, SelectorsExhausted)

    @pytest.mark.asyncio
    async def test_failure_without_reason_marks_session_failed(self):
        """A strategy plug-in reporting a bare failure still fails the session."""

        class BareFailureStrategy(UrlParameterStrategy):
            async def execute(self, engine, prompt):
                return StrategyOutcome(self.descriptor.id, self.kind(), submitted=False)

        service = make_service("chatgpt")
        session = Session(service, FakeEngine("chatgpt"), BareFailureStrategy(service))
        await session.warm_up()

        outcome = await session.execute("hello")

        assert outcome.failed is True
        assert session.ready_state is ReadyState.FAILED
        assert type(session.failure) is StrategyExecutionFailure
        assert "without a reason" in str(session.failure)

    @pytest.mark.asyncio
    async def test_follow_up_strategy_used(self):
        """follow_up=True uses the follow-up strategy when configured."""
        service = make_service("chatgpt")
        engine = FakeEngine("chatgpt", dom=dom_for(service))
        session = Session(
            service,
            engine,
            UrlParameterStrategy(service),
            follow_up_strategy=SimulatedInputStrategy(service, follow_up=True),
        )
        await session.warm_up()

        first = await session.execute("first")
        second = await session.execute("second", follow_up=True)

        assert first.strategy == "url_parameter"
        assert second.strategy == "simulated_input"
        assert engine.submitted_texts == ["second"]

    @pytest.mark.asyncio
    async def test_one_prompt_in_flight(self):
        """A second prompt waits for the first submission to finish."""
        gate = asyncio.Event()
        session, engine = url_session()
        await session.warm_up()
        engine.navigation_gate = gate

        first = asyncio.create_task(session.execute("first"))
        second = asyncio.create_task(session.execute("second"))
        await settle()

        assert session.current_prompt == "first"
        assert len(engine.navigations) == 2  # warm-up + first

        gate.set()
        await asyncio.gather(first, second)

        assert engine.navigations[-2].endswith("q=first")
        assert engine.navigations[-1].endswith("q=second")


# ============================================================================
# Crash handling
# ============================================================================


class TestCrashRecovery:
    """Test engine crash handling."""

    @pytest.mark.asyncio
    async def test_crash_reloads_and_retries_prompt(self):
        """A crash during a submission reloads once and re-runs the prompt."""
        gate = asyncio.Event()
        session, engine = url_session()
        await session.warm_up()
        engine.navigation_gate = gate

        running = asyncio.create_task(session.execute("interrupted"))
        await settle()
        engine.crash()
        await settle()

        assert session.ready_state is ReadyState.INITIALIZING

        gate.set()
        await running
        await session._recovery_task

        assert session.ready_state is ReadyState.READY
        assert engine.navigations.count("https://chatgpt.example.com/chat") == 2
        assert engine.navigations[-1].endswith("q=interrupted")

    @pytest.mark.asyncio
    async def test_second_crash_fails(self):
        """The automatic reload is spent after one crash."""
        session, engine = url_session()
        await session.warm_up()

        engine.crash()
        await settle()
        await session._recovery_task
        assert session.ready_state is ReadyState.READY

        engine.crash()
        await settle()

        assert session.ready_state is ReadyState.FAILED
        assert isinstance(session.failure, SessionCrashed)

    @pytest.mark.asyncio
    async def test_reload_resets_crash_budget(self):
        """A user reload restores the automatic recovery."""
        session, engine = url_session()
        await session.warm_up()
        engine.crash()
        await settle()
        await session._recovery_task

        await session.reload()
        engine.crash()
        await settle()

        assert session.ready_state is ReadyState.INITIALIZING
        await session._recovery_task
        assert session.ready_state is ReadyState.READY

    @pytest.mark.asyncio
    async def test_external_close_fails_session(self):
        """A page closed by something else marks the session FAILED."""
        session, engine = url_session()
        await session.warm_up()

        engine.close_externally()
        await settle()

        assert session.ready_state is ReadyState.FAILED
        assert isinstance(session.failure, SessionCrashed)


# ============================================================================
# Teardown
# ============================================================================


class TestClose:
    """Test Session.close()."""

    @pytest.mark.asyncio
    async def test_teardown_order(self):
        """close() runs stop, then detaches callbacks, then releases the engine."""
        session, engine = url_session(generation=7)
        await session.warm_up()

        await session.close()

        assert engine.lifecycle == ["stop", "clear_callbacks", "close"]
        assert session.generation == 8
        assert session.is_closed is True

    @pytest.mark.asyncio
    async def test_close_idempotent(self):
        """A second close() does nothing."""
        session, engine = url_session()

        await session.close()
        await session.close()

        assert engine.lifecycle == ["stop", "clear_callbacks", "close"]

    @pytest.mark.asyncio
    async def test_stale_callback_dropped(self):
        """A callback captured before close is dropped after it."""
        session, engine = url_session()
        await session.warm_up()
        stale_crash = engine.callbacks.on_crash

        await session.close()
        stale_crash()
        await settle()

        assert session.ready_state is ReadyState.READY
        assert session.failure is None

    @pytest.mark.asyncio
    async def test_execute_after_close(self):
        """A closed session refuses prompts."""
        session, _ = url_session()
        await session.warm_up()
        await session.close()

        outcome = await session.execute("hello")

        assert outcome.failed is True
        assert "closed" in outcome.detail


# ============================================================================
# Hibernation
# ============================================================================


class TestHibernation:
    """Test pause()/resume()."""

    @pytest.mark.asyncio
    async def test_pause_and_resume(self):
        """pause() and resume() inject the hibernation scripts once each."""
        session, engine = url_session()
        await session.warm_up()

        await session.pause()
        await session.pause()
        assert session.paused is True

        await session.resume()
        assert session.paused is False
        assert engine.scripts == [PAUSE_SCRIPT, RESUME_SCRIPT]

    @pytest.mark.asyncio
    async def test_execute_resumes_paused_session(self):
        """A prompt wakes a hibernated session first."""
        session, engine = url_session()
        await session.warm_up()
        await session.pause()

        outcome = await session.execute("hello")

        assert outcome.submitted is True
        assert engine.scripts[-1] == RESUME_SCRIPT

    @pytest.mark.asyncio
    async def test_status(self):
        """status() reports readiness and the last outcome."""
        session, _ = url_session()
        await session.warm_up()
        await session.execute("hello")

        status = session.status()

        assert status["service_id"] == "chatgpt"
        assert status["state"] == "ready"
        assert status["submitted"] is True
        assert status["error"] is None
