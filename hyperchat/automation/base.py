"""
Automation strategy abstraction for Hyperchat.

An automation strategy is the service-specific procedure that submits a
prompt into a live session engine. Two families exist:

- url_parameter: the prompt is percent-encoded into the service's query
  URL and the engine navigates there (deterministic, fast)
- simulated_input: the prompt is pasted into the page's input surface and
  submitted through the page's own controls (for services that only react
  to trusted input)

Key components:
- FailureReason: Why a strategy failed
- StrategyOutcome: Exactly one of Submitted or Failed(reason)
- AutomationStrategy: Protocol every strategy satisfies
- BaseStrategy: Template that bounds a strategy's submit() with the fixed
  timeout, retries once, and converts every failure into an outcome

Architecture:
    Subclasses implement `submit()` and raise StrategyExecutionFailure
    subclasses (or EngineError). `execute()` never raises for those: it
    always returns a StrategyOutcome, so a session can never hang silently
    on a strategy. Cancellation still propagates.

Example:
    >>> strategy = StrategyRegistry.create_strategy("url_parameter", descriptor)
    >>> outcome = await strategy.execute(engine, "What is Rust?")
    >>> outcome.submitted
    True
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from hyperchat.config.constants import STRATEGY_TIMEOUT_SECONDS
from hyperchat.config.schema import ServiceDescriptor
from hyperchat.engine.base import BrowserEngine
from hyperchat.exceptions import (
    EngineError,
    NavigationError,
    SelectorsExhausted,
    StrategyExecutionFailure,
    SubmitFailed,
)
from hyperchat.retry_config import create_session_retrying
from hyperchat.utils.time import utc_timestamp

logger = logging.getLogger(__name__)


class FailureReason(str, Enum):
    """Why a strategy reported Failed."""

    SELECTORS_EXHAUSTED = "selectors_exhausted"
    SUBMIT_FAILED = "submit_failed"
    NAVIGATION_ERROR = "navigation_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class StrategyOutcome:
    """
    Result of one strategy execution.

    Attributes:
        service_id: Service the prompt was submitted to
        strategy: Strategy kind that ran (e.g., "url_parameter")
        submitted: True for Submitted, False for Failed
        reason: Failure reason (None when submitted)
        detail: Human-readable failure detail (None when submitted)
        attempts: Number of attempts made (1 or 2)
        timestamp_utc: When the outcome was produced
    """

    service_id: str
    strategy: str
    submitted: bool
    reason: FailureReason | None = None
    detail: str | None = None
    attempts: int = 1
    timestamp_utc: str = field(default_factory=utc_timestamp)

    @classmethod
    def success(cls, service_id: str, strategy: str, attempts: int = 1) -> "StrategyOutcome":
        return cls(service_id=service_id, strategy=strategy, submitted=True, attempts=attempts)

    @classmethod
    def failure(
        cls,
        service_id: str,
        strategy: str,
        reason: FailureReason,
        detail: str,
        attempts: int = 1,
    ) -> "StrategyOutcome":
        return cls(
            service_id=service_id,
            strategy=strategy,
            submitted=False,
            reason=reason,
            detail=detail,
            attempts=attempts,
        )

    @property
    def failed(self) -> bool:
        return not self.submitted


class AutomationStrategy(Protocol):
    """Interface every automation strategy satisfies."""

    descriptor: ServiceDescriptor

    @classmethod
    def kind(cls) -> str:
        """Strategy kind used in configuration (e.g., "simulated_input")."""
        ...

    async def execute(self, engine: BrowserEngine, prompt: str) -> StrategyOutcome:
        """Submit prompt through engine; always returns exactly one outcome."""
        ...


class BaseStrategy:
    """
    Base class for automation strategies.

    Subclasses must implement:
    - kind(): Strategy kind registered in StrategyRegistry
    - submit(): Perform the submission, raising on failure

    Only timeouts and navigation errors are retried: an exhausted selector
    list or a failed submit reflects the page's current markup, which a
    second identical attempt would not change.

    Attributes:
        descriptor: Service this strategy instance drives
    """

    RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (NavigationError, TimeoutError)

    def __init__(self, descriptor: ServiceDescriptor):
        self.descriptor = descriptor

    @classmethod
    def kind(cls) -> str:
        raise NotImplementedError

    async def submit(self, engine: BrowserEngine, prompt: str) -> None:
        """Submit prompt; raise StrategyExecutionFailure or EngineError on failure."""
        raise NotImplementedError

    async def execute(self, engine: BrowserEngine, prompt: str) -> StrategyOutcome:
        """
        Run submit() under the fixed timeout with exactly one retry.

        Args:
            engine: The session's browsing engine
            prompt: Raw prompt text

        Returns:
            StrategyOutcome: Submitted, or Failed with the last error's reason
        """
        service_id = self.descriptor.id
        kind = self.kind()
        attempts = 0

        try:
            async for attempt in create_session_retrying(self.RETRYABLE_ERRORS):
                with attempt:
                    attempts += 1
                    if attempts > 1:
                        logger.info(f"[{service_id}] Retrying {kind} submission")
                    await asyncio.wait_for(
                        self.submit(engine, prompt),
                        timeout=STRATEGY_TIMEOUT_SECONDS,
                    )
        except SelectorsExhausted as e:
            return self._failed(FailureReason.SELECTORS_EXHAUSTED, e, attempts)
        except SubmitFailed as e:
            return self._failed(FailureReason.SUBMIT_FAILED, e, attempts)
        except NavigationError as e:
            return self._failed(FailureReason.NAVIGATION_ERROR, e, attempts)
        except TimeoutError:
            return self._failed(
                FailureReason.TIMEOUT,
                f"no result within {STRATEGY_TIMEOUT_SECONDS}s",
                attempts,
            )
        except (EngineError, StrategyExecutionFailure) as e:
            return self._failed(FailureReason.SUBMIT_FAILED, e, attempts)

        logger.info(f"[{service_id}] Prompt submitted via {kind}")
        return StrategyOutcome.success(service_id, kind, attempts=attempts)

    def _failed(
        self, reason: FailureReason, error: Exception | str, attempts: int
    ) -> StrategyOutcome:
        detail = str(error)
        logger.warning(
            f"[{self.descriptor.id}] {self.kind()} failed ({reason.value}): {detail}"
        )
        return StrategyOutcome.failure(
            self.descriptor.id, self.kind(), reason, detail, attempts=attempts
        )
