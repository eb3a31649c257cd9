"""Shared fixtures: shortened timings so async tests run in milliseconds."""

import pytest

from hyperchat.utils.console import output_mode


@pytest.fixture(autouse=True)
def fast_timings(monkeypatch):
    """Shrink settle, retry and recovery delays (timeouts stay untouched)."""
    monkeypatch.setattr("hyperchat.automation.simulated_input.SUBMIT_SETTLE_SECONDS", 0)
    monkeypatch.setattr("hyperchat.retry_config.SESSION_RETRY_WAIT_SECONDS", 0)
    monkeypatch.setattr("hyperchat.session.CRASH_RECOVERY_DELAY_SECONDS", 0.01)


@pytest.fixture(autouse=True)
def reset_output_mode():
    """CLI commands mutate the global output mode; restore it after each test."""
    yield
    output_mode.format = "text"
    output_mode.quiet = False
    output_mode._json_buffer.clear()
