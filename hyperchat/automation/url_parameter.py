"""
Parameterized-navigation strategy.

The prompt is percent-encoded into the service's query parameter and the
session navigates to the resulting address. Only services that accept a
prompt via URL (ChatGPT, Perplexity, Google) can use it, and every
submission starts a new conversation.
"""

import logging
from urllib.parse import quote

from hyperchat.config.schema import ServiceDescriptor
from hyperchat.engine.base import BrowserEngine

from .base import BaseStrategy
from .registry import StrategyRegistry

logger = logging.getLogger(__name__)


def build_query_url(descriptor: ServiceDescriptor, prompt: str) -> str:
    """
    Build the submission URL for a prompt.

    The prompt parameter comes first, additional parameters follow in
    their configured order. Every key and value is percent-encoded with no
    safe characters, so '&', '=', '?' and '/' in a prompt cannot break the
    query string.

    Args:
        descriptor: Service with base_url, query_param and additional_params
        prompt: Raw prompt text

    Returns:
        str: Absolute URL

    Example:
        >>> build_query_url(chatgpt, "Hello world")
        'https://chatgpt.com?q=Hello%20world'
        >>> build_query_url(google, "a&b")
        'https://www.google.com/search?q=a%26b&hl=en&safe=off'
    """
    separator = "&" if "?" in descriptor.base_url else "?"
    params = [(descriptor.query_param, prompt), *descriptor.additional_params.items()]
    query = "&".join(f"{quote(key, safe='')}={quote(value, safe='')}" for key, value in params)
    return f"{descriptor.base_url}{separator}{query}"


@StrategyRegistry.register
class UrlParameterStrategy(BaseStrategy):
    """Submit a prompt by navigating to the service's query URL."""

    @classmethod
    def kind(cls) -> str:
        return "url_parameter"

    async def submit(self, engine: BrowserEngine, prompt: str) -> None:
        url = build_query_url(self.descriptor, prompt)
        logger.debug(f"[{self.descriptor.id}] Navigating to query URL")
        await engine.navigate(url)
