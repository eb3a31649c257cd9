"""
Tests for automation.url_parameter and the shared strategy machinery.

Tests cover:
- build_query_url(): separators, parameter order, percent-encoding
- UrlParameterStrategy: navigation, outcome reporting
- BaseStrategy.execute(): single retry, timeout handling
- StrategyRegistry: registration and lookup
"""

import asyncio

import pytest

from hyperchat.automation import (
    FailureReason,
    SimulatedInputStrategy,
    StrategyRegistry,
    UrlParameterStrategy,
    build_query_url,
)
from hyperchat.config.schema import default_services
from tests.fakes import FakeEngine, make_service

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def chatgpt():
    return next(s for s in default_services() if s.id == "chatgpt")


@pytest.fixture
def google():
    return next(s for s in default_services() if s.id == "google")


# ============================================================================
# build_query_url
# ============================================================================


class TestBuildQueryUrl:
    """Test URL construction for parameterized navigation."""

    def test_simple_prompt(self, chatgpt):
        """Spaces are percent-encoded, '?' starts the query."""
        assert build_query_url(chatgpt, "test query") == "https://chatgpt.com?q=test%20query"

    def test_additional_params_follow_prompt(self, google):
        """Extra params come after the prompt parameter in configured order."""
        url = build_query_url(google, "hello")

        assert url == "https://www.google.com/search?q=hello&hl=en&safe=off"

    def test_existing_query_uses_ampersand(self):
        """A base_url that already has a query gets '&' as separator."""
        service = make_service("svc", base_url="https://svc.example.com/search?src=hc")

        assert build_query_url(service, "x") == "https://svc.example.com/search?src=hc&q=x"

    def test_reserved_characters_encoded(self, chatgpt):
        """Characters that would break the query string are encoded."""
        url = build_query_url(chatgpt, "a&b=c?d/e#f")

        assert url == "https://chatgpt.com?q=a%26b%3Dc%3Fd%2Fe%23f"

    def test_unicode_encoded_as_utf8(self, chatgpt):
        """Non-ASCII text is UTF-8 percent-encoded."""
        assert build_query_url(chatgpt, "café") == "https://chatgpt.com?q=caf%C3%A9"

    def test_custom_query_param(self):
        """query_param names the prompt parameter."""
        service = make_service("svc", query_param="prompt")

        assert build_query_url(service, "hi").endswith("/chat?prompt=hi")


# ============================================================================
# UrlParameterStrategy
# ============================================================================


class TestUrlParameterStrategy:
    """Test UrlParameterStrategy.execute()."""

    @pytest.mark.asyncio
    async def test_navigates_to_query_url(self, chatgpt):
        """The strategy navigates exactly once to the encoded URL."""
        engine = FakeEngine("chatgpt")

        outcome = await UrlParameterStrategy(chatgpt).execute(engine, "test query")

        assert outcome.submitted is True
        assert outcome.strategy == "url_parameter"
        assert outcome.attempts == 1
        assert engine.navigations == ["https://chatgpt.com?q=test%20query"]
        assert engine.inserted == []

    @pytest.mark.asyncio
    async def test_navigation_error_retried_once(self, chatgpt):
        """One navigation failure is retried and then succeeds."""
        engine = FakeEngine("chatgpt", navigation_failures=1)

        outcome = await UrlParameterStrategy(chatgpt).execute(engine, "hi")

        assert outcome.submitted is True
        assert outcome.attempts == 2
        assert len(engine.navigations) == 2

    @pytest.mark.asyncio
    async def test_navigation_error_after_retry_fails(self, chatgpt):
        """Two navigation failures produce Failed(NAVIGATION_ERROR)."""
        engine = FakeEngine("chatgpt", navigation_failures=2)

        outcome = await UrlParameterStrategy(chatgpt).execute(engine, "hi")

        assert outcome.failed is True
        assert outcome.reason is FailureReason.NAVIGATION_ERROR
        assert outcome.attempts == 2
        assert "ERR_CONNECTION_REFUSED" in outcome.detail

    @pytest.mark.asyncio
    async def test_timeout_reported(self, chatgpt, monkeypatch):
        """A hanging navigation times out on both attempts."""
        monkeypatch.setattr("hyperchat.automation.base.STRATEGY_TIMEOUT_SECONDS", 0.05)
        engine = FakeEngine("chatgpt", hang_navigation=True)

        outcome = await asyncio.wait_for(
            UrlParameterStrategy(chatgpt).execute(engine, "hi"), timeout=2
        )

        assert outcome.reason is FailureReason.TIMEOUT
        assert outcome.attempts == 2


# ============================================================================
# StrategyRegistry
# ============================================================================


class TestStrategyRegistry:
    """Test StrategyRegistry lookups."""

    def test_both_families_registered(self):
        """Importing hyperchat.automation registers both strategies."""
        assert StrategyRegistry.is_registered("url_parameter")
        assert StrategyRegistry.is_registered("simulated_input")
        assert StrategyRegistry.list_strategies() == ["simulated_input", "url_parameter"]

    def test_create_strategy(self, chatgpt):
        """create_strategy() instantiates the class for a kind."""
        strategy = StrategyRegistry.create_strategy("url_parameter", chatgpt)

        assert isinstance(strategy, UrlParameterStrategy)
        assert strategy.descriptor is chatgpt

    def test_create_strategy_passes_options(self, chatgpt):
        """Keyword options reach the strategy constructor."""
        strategy = StrategyRegistry.create_strategy("simulated_input", chatgpt, follow_up=True)

        assert isinstance(strategy, SimulatedInputStrategy)
        assert strategy.follow_up is True

    def test_unknown_kind(self, chatgpt):
        """Unknown kinds raise ValueError listing the registered ones."""
        with pytest.raises(ValueError, match="url_parameter"):
            StrategyRegistry.create_strategy("carrier_pigeon", chatgpt)

    def test_register_requires_interface(self):
        """Classes without kind()/execute() cannot be registered."""

        class NotAStrategy:
            pass

        with pytest.raises(AttributeError):
            StrategyRegistry.register(NotAStrategy)
