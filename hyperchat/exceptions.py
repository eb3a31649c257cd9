"""
Custom exceptions for Hyperchat.

This module provides a hierarchy of exceptions that enable type-safe error
handling throughout the runtime core. All exceptions inherit from the base
HyperchatError for consistent catching.

Exception Hierarchy:
    HyperchatError (base)
    ├── ConfigurationError
    │   ├── ConfigFileNotFoundError
    │   └── ConfigValidationError
    ├── PromptValidationError (also a ValueError)
    ├── EngineError
    ├── SessionError
    │   ├── SessionWarmupTimeout
    │   └── SessionCrashed
    ├── StrategyExecutionFailure
    │   ├── SelectorsExhausted
    │   ├── SubmitFailed
    │   └── NavigationError
    ├── PresentationError
    │   └── TransitionReentrancy
    └── SpaceDetectionUnavailable

Session-scoped errors never escape the Orchestrator: they mark the session
FAILED and surface only through its status. TransitionReentrancy and
SpaceDetectionUnavailable are handled inside the component that raises
them.

Usage:
    from hyperchat.exceptions import ConfigurationError

    try:
        config = load_config(path)
    except ConfigFileNotFoundError as e:
        logger.error(f"Config file not found: {e}")
        sys.exit(1)
"""


class HyperchatError(Exception):
    """
    Base exception for all Hyperchat errors.

    All custom exceptions in this application inherit from this class,
    so a single except clause can catch every application-specific error.
    """

    pass


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(HyperchatError):
    """
    Base class for configuration-related errors.

    Raised when configuration loading, parsing, or validation fails.
    Should be caught and result in exit code 1 (configuration error).
    """

    pass


class ConfigFileNotFoundError(ConfigurationError):
    """
    Configuration file does not exist at the specified path.

    Example:
        raise ConfigFileNotFoundError("/path/to/hyperchat.yaml")
    """

    pass


class ConfigValidationError(ConfigurationError):
    """
    Configuration file is invalid (YAML or schema validation failed).

    Example:
        raise ConfigValidationError("Duplicate service ids: chatgpt")
    """

    pass


class PromptValidationError(HyperchatError, ValueError):
    """Prompt submitted to the Orchestrator is empty or whitespace only."""

    pass


# ============================================================================
# Engine Errors
# ============================================================================


class EngineError(HyperchatError):
    """
    The browsing engine rejected an operation.

    Wraps Playwright errors so that strategies and sessions never depend
    on the engine library's exception types.
    """

    pass


# ============================================================================
# Session Errors
# ============================================================================


class SessionError(HyperchatError):
    """
    Base class for errors scoped to a single session.

    Attributes:
        service_id: Identifier of the service whose session failed
    """

    def __init__(self, service_id: str, message: str):
        self.service_id = service_id
        super().__init__(f"[{service_id}] {message}")


class SessionWarmupTimeout(SessionError):
    """
    Session did not reach READY within the warm-up timeout (after its retry).

    Example:
        raise SessionWarmupTimeout("chatgpt", "home page did not load in 30s")
    """

    pass


class SessionCrashed(SessionError):
    """
    The session's engine process crashed and the automatic reload was spent.
    """

    pass


# ============================================================================
# Strategy Errors
# ============================================================================


class StrategyExecutionFailure(HyperchatError):
    """
    Base class for automation strategy failures.

    Strategies raise subclasses of this error internally; the strategy base
    class converts them into a Failed outcome so callers always get exactly
    one StrategyOutcome.

    Attributes:
        service_id: Identifier of the service the strategy was driving
    """

    def __init__(self, service_id: str, message: str):
        self.service_id = service_id
        super().__init__(f"[{service_id}] {message}")


class SelectorsExhausted(StrategyExecutionFailure):
    """
    None of the ordered selectors matched a visible, enabled element.

    Example:
        raise SelectorsExhausted("claude", "no input matched 7 selectors")
    """

    pass


class SubmitFailed(StrategyExecutionFailure):
    """
    The prompt could not be inserted or the submit action failed.
    """

    pass


class NavigationError(StrategyExecutionFailure):
    """
    Navigating the session to a URL failed (network error, bad status, crash).

    Retried once by both warm-up and strategy execution.
    """

    pass


# ============================================================================
# Presentation Errors
# ============================================================================


class PresentationError(HyperchatError):
    """Base class for presentation state machine errors."""

    pass


class TransitionReentrancy(PresentationError):
    """
    A presentation transition was requested while another was still running.

    Raised and caught inside PresentationController; it is logged and the
    duplicate request is dropped.
    """

    pass


# ============================================================================
# Workspace Errors
# ============================================================================


class SpaceDetectionUnavailable(HyperchatError):
    """
    The platform workspace signal cannot answer right now.

    SpaceResolver catches this and falls back to the conservative
    focused-window heuristic.
    """

    pass
