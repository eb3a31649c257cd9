"""
Configuration schema models for Hyperchat.

This module defines Pydantic models for validating and parsing the
hyperchat.yaml file. All models use Pydantic v2 field validators.

Models:
    ServiceDescriptor: Immutable description of one external AI service
    EngineSettings: Browser engine settings (browser type, headless, CDP)
    WindowSettings: Default conversation window size
    HyperchatConfig: Root configuration model

The built-in service catalog lives in DEFAULT_SERVICE_DATA. YAML entries
are merged onto it by service id (see config.loader), so a user can flip
`enabled` or replace a selector list without restating the whole service.
"""

from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationInfo,
    field_validator,
    model_validator,
)

from .constants import DEFAULT_WINDOW_HEIGHT, DEFAULT_WINDOW_WIDTH
from .selectors import input_selectors_for, submit_selectors_for

StrategyKind = Literal["url_parameter", "simulated_input"]

DESKTOP_SAFARI_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15"
)

IPAD_USER_AGENT = (
    "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


class ServiceDescriptor(BaseModel):
    """
    Immutable description of one external conversational AI service.

    Built once at startup and shared by every window's Session for that
    service. Selector tuples are ordered by confidence; when omitted they
    are filled from the default selector catalog.

    Attributes:
        id: Stable lowercase identifier (e.g., "chatgpt")
        name: Display name shown in the UI
        order: Column order weight (lower is further left)
        strategy: Automation strategy kind used for a new conversation
        home_url: Page loaded during warm-up (defaults to base_url)
        base_url: Address prompts are submitted against
        query_param: Query parameter that carries the prompt
        additional_params: Extra query parameters appended after the prompt
        user_agent: Optional user agent override for this service's context
        input_selectors: Ordered CSS selectors for the prompt input
        submit_selectors: Ordered CSS selectors for the submit control
        skip_focus: Never focus the input (focusing has side effects)
        enabled: Whether a session is created for this service
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    order: int
    strategy: StrategyKind
    home_url: str = ""
    base_url: str
    query_param: str = "q"
    additional_params: dict[str, str] = {}
    user_agent: str | None = None
    input_selectors: tuple[str, ...] = ()
    submit_selectors: tuple[str, ...] = ()
    skip_focus: bool = False
    enabled: bool = True

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, data: Any) -> Any:
        """Default home_url to base_url and selectors to the catalog entry."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        service_id = data.get("id", "")
        if not data.get("home_url") and data.get("base_url"):
            data["home_url"] = data["base_url"]
        if not data.get("input_selectors"):
            data["input_selectors"] = input_selectors_for(service_id)
        if not data.get("submit_selectors"):
            data["submit_selectors"] = submit_selectors_for(service_id)
        return data

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate id is a non-empty lowercase slug."""
        if not v or v.isspace():
            raise ValueError("id cannot be empty")
        if v != v.lower() or not v.replace("-", "").replace("_", "").isalnum():
            raise ValueError(
                f"id must be lowercase letters, digits, '-' or '_', got: {v}"
            )
        return v

    @field_validator("name", "query_param")
    @classmethod
    def validate_non_empty(cls, v: str, info: ValidationInfo) -> str:
        """Validate text fields are non-empty."""
        if not v or v.isspace():
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

    @field_validator("home_url", "base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URLs are absolute http(s) addresses."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"URL must be an absolute http(s) address, got: {v}")
        return v

    @field_validator("input_selectors", "submit_selectors")
    @classmethod
    def validate_selectors(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Validate selector lists contain no blank entries."""
        for selector in v:
            if not selector or selector.isspace():
                raise ValueError("selectors cannot be empty strings")
        return v

    @property
    def origin(self) -> str:
        """Scheme and host of the home page (used for favicons)."""
        parsed = urlparse(self.home_url)
        return f"{parsed.scheme}://{parsed.netloc}"


class EngineSettings(BaseModel):
    """
    Browser engine settings.

    Attributes:
        browser: Playwright browser type to launch
        headless: Run without visible browser windows
        cdp_endpoint: Connect to an already running Chromium over CDP instead
            of launching one (e.g., "http://localhost:9222")
        profile_dir: Root directory for persistent per-service profiles. When
            set, each service keeps its cookies (logins) in its own
            subdirectory and gets its own persistent context.
    """

    browser: Literal["chromium", "firefox", "webkit"] = "chromium"
    headless: bool = False
    cdp_endpoint: str | None = None
    profile_dir: Path | None = None

    @model_validator(mode="after")
    def validate_exclusive_modes(self) -> "EngineSettings":
        """CDP connections cannot use persistent profiles."""
        if self.cdp_endpoint and self.profile_dir:
            raise ValueError("cdp_endpoint and profile_dir cannot be combined")
        if self.cdp_endpoint and self.browser != "chromium":
            raise ValueError("cdp_endpoint requires browser 'chromium'")
        return self


class WindowSettings(BaseModel):
    """Default conversation window size in points."""

    width: int = DEFAULT_WINDOW_WIDTH
    height: int = DEFAULT_WINDOW_HEIGHT

    @field_validator("width", "height")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate dimensions are positive."""
        if v <= 0:
            raise ValueError(f"Window dimension must be positive, got: {v}")
        return v


class HyperchatConfig(BaseModel):
    """
    Root configuration model.

    Attributes:
        services: Every known service, enabled or not
        engine: Browser engine settings
        window: Default window size
        reply_to_all: Paste follow-up prompts into the open conversations
            instead of starting new ones
    """

    services: list[ServiceDescriptor]
    engine: EngineSettings = EngineSettings()
    window: WindowSettings = WindowSettings()
    reply_to_all: bool = True

    @field_validator("services")
    @classmethod
    def validate_services(cls, v: list[ServiceDescriptor]) -> list[ServiceDescriptor]:
        """Validate service ids are unique and at least one is enabled."""
        seen: set[str] = set()
        duplicates: set[str] = set()
        for service in v:
            if service.id in seen:
                duplicates.add(service.id)
            seen.add(service.id)

        if duplicates:
            raise ValueError(
                f"Duplicate service ids found: {', '.join(sorted(duplicates))}"
            )

        if not any(service.enabled for service in v):
            raise ValueError("At least one service must be enabled")

        return v

    def enabled_services(self) -> list[ServiceDescriptor]:
        """Return enabled services in column order."""
        return sorted(
            (service for service in self.services if service.enabled),
            key=lambda service: (service.order, service.id),
        )

    def get_service(self, service_id: str) -> ServiceDescriptor | None:
        """Look up a service by id."""
        for service in self.services:
            if service.id == service_id:
                return service
        return None


# Built-in service catalog. Plain dicts so that YAML entries can be merged
# field by field before validation.
DEFAULT_SERVICE_DATA: list[dict[str, Any]] = [
    {
        "id": "chatgpt",
        "name": "ChatGPT",
        "order": 1,
        "strategy": "url_parameter",
        "home_url": "https://chatgpt.com",
        "base_url": "https://chatgpt.com",
        "query_param": "q",
        "user_agent": DESKTOP_SAFARI_USER_AGENT,
    },
    {
        "id": "perplexity",
        "name": "Perplexity",
        "order": 2,
        "strategy": "url_parameter",
        "home_url": "https://www.perplexity.ai",
        "base_url": "https://www.perplexity.ai/search/new",
        "query_param": "q",
        "user_agent": DESKTOP_SAFARI_USER_AGENT,
        "skip_focus": True,
    },
    {
        "id": "google",
        "name": "Google",
        "order": 3,
        "strategy": "url_parameter",
        "home_url": "https://www.google.com",
        "base_url": "https://www.google.com/search",
        "query_param": "q",
        "additional_params": {"hl": "en", "safe": "off"},
        "user_agent": IPAD_USER_AGENT,
    },
    {
        "id": "claude",
        "name": "Claude",
        "order": 4,
        "strategy": "simulated_input",
        "home_url": "https://claude.ai",
        "base_url": "https://claude.ai",
        "query_param": "q",
        "user_agent": DESKTOP_SAFARI_USER_AGENT,
        "enabled": False,
    },
]


def default_services() -> list[ServiceDescriptor]:
    """Build descriptors for the built-in service catalog."""
    return [ServiceDescriptor.model_validate(data) for data in DEFAULT_SERVICE_DATA]
