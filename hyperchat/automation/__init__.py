"""
Automation strategies for Hyperchat.

This module provides the strategy infrastructure:
- StrategyOutcome / FailureReason: result of a submission
- AutomationStrategy protocol and BaseStrategy template
- StrategyRegistry plugin system
- Built-in strategies (url_parameter, simulated_input)

Importing this package registers the built-in strategies.

Example:
    >>> from hyperchat.automation import StrategyRegistry
    >>> StrategyRegistry.list_strategies()
    ['simulated_input', 'url_parameter']
"""

from .base import AutomationStrategy, BaseStrategy, FailureReason, StrategyOutcome
from .registry import StrategyRegistry

# Import built-in strategies to trigger auto-registration
from .simulated_input import SimulatedInputStrategy
from .url_parameter import UrlParameterStrategy, build_query_url

__all__ = [
    "AutomationStrategy",
    "BaseStrategy",
    "FailureReason",
    "SimulatedInputStrategy",
    "StrategyOutcome",
    "StrategyRegistry",
    "UrlParameterStrategy",
    "build_query_url",
]
