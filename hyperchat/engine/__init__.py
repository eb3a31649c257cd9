"""
Browsing engines for Hyperchat sessions.

The protocol lives in engine.base; engine.playwright_engine provides the
Playwright implementation used by the application.
"""

from .base import BrowserEngine, EngineCallbacks, EngineFactory

__all__ = [
    "BrowserEngine",
    "EngineCallbacks",
    "EngineFactory",
]
