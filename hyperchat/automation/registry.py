"""
Registry for automation strategies.

Strategies register themselves at import time with the
@StrategyRegistry.register decorator. Sessions ask the registry for the
strategy matching a ServiceDescriptor's `strategy` field, so new strategy
kinds can be added without touching Session or Orchestrator code.

Example:
    >>> @StrategyRegistry.register
    ... class MyStrategy(BaseStrategy):
    ...     @classmethod
    ...     def kind(cls) -> str:
    ...         return "my_strategy"
    ...
    ...     async def submit(self, engine, prompt):
    ...         ...

    >>> strategy = StrategyRegistry.create_strategy("my_strategy", descriptor)
"""

import logging
from typing import Any

from hyperchat.config.schema import ServiceDescriptor

from .base import AutomationStrategy

logger = logging.getLogger(__name__)


class StrategyRegistry:
    """
    Central registry mapping strategy kinds to strategy classes.

    Class attributes:
        _strategies: Dictionary mapping strategy kinds to classes
    """

    _strategies: dict[str, type] = {}

    @classmethod
    def register(cls, strategy_class: type) -> type:
        """
        Decorator to register a strategy class.

        Args:
            strategy_class: Class with a `kind()` classmethod and `execute()`

        Returns:
            type: The same class (unmodified, for decorator chaining)

        Raises:
            AttributeError: If the class doesn't implement required methods
        """
        for method in ("kind", "execute"):
            if not hasattr(strategy_class, method):
                raise AttributeError(
                    f"Strategy {strategy_class.__name__} missing required method: {method}"
                )

        kind = strategy_class.kind()

        if kind in cls._strategies:
            logger.warning(
                f"Strategy '{kind}' already registered. "
                f"Overwriting with {strategy_class.__name__}"
            )

        cls._strategies[kind] = strategy_class
        logger.debug(f"Registered automation strategy: {kind} ({strategy_class.__name__})")

        return strategy_class

    @classmethod
    def create_strategy(
        cls, kind: str, descriptor: ServiceDescriptor, **options: Any
    ) -> AutomationStrategy:
        """
        Create a strategy instance for a service.

        Args:
            kind: Registered strategy kind (e.g., "url_parameter")
            descriptor: Service the strategy will drive
            **options: Extra keyword arguments for the strategy constructor

        Returns:
            AutomationStrategy: Configured strategy instance

        Raises:
            ValueError: If the kind is unknown
        """
        if kind not in cls._strategies:
            available = ", ".join(sorted(cls._strategies)) if cls._strategies else "none"
            raise ValueError(
                f"Unknown automation strategy: '{kind}'. Available strategies: {available}"
            )

        logger.debug(f"[{descriptor.id}] Creating {kind} strategy")
        return cls._strategies[kind](descriptor, **options)

    @classmethod
    def list_strategies(cls) -> list[str]:
        """Return registered strategy kinds, sorted."""
        return sorted(cls._strategies)

    @classmethod
    def is_registered(cls, kind: str) -> bool:
        return kind in cls._strategies
