"""
Default selector catalog for simulated-input automation.

Each service maps to two ordered tuples of CSS selectors: the input surface
and the submit control. Order is confidence order, the first selector that
matches a visible, enabled element wins. Target sites change their markup
independently of this package, so these lists are defaults only: every
service entry in the YAML configuration may replace them.

Services without an entry use the generic fallbacks.
"""

GENERIC_INPUT_SELECTORS: tuple[str, ...] = (
    "textarea:not([readonly]):not([disabled])",
    'input[type="text"]:not([readonly]):not([disabled])',
    'div[contenteditable="true"]:not([aria-hidden="true"])',
)

GENERIC_SUBMIT_SELECTORS: tuple[str, ...] = (
    'button[type="submit"]',
    'button[aria-label*="Send"]',
    'input[type="submit"]',
)

INPUT_SELECTORS: dict[str, tuple[str, ...]] = {
    "chatgpt": (
        'textarea[data-testid="textbox"]',
        'div[contenteditable="true"][data-testid="textbox"]',
        'textarea[placeholder*="Message ChatGPT"]',
        'textarea[placeholder*="Send a message"]',
        'div[contenteditable="true"][data-id="root"]',
        "#prompt-textarea",
        'textarea[data-id="root"]',
        'div[contenteditable="true"][role="textbox"]',
        'textarea[placeholder*="Message"]',
        'textarea[placeholder*="Type a message"]',
        'div[contenteditable="true"]',
        "textarea.form-control",
        "textarea",
        'input[type="text"]',
    ),
    "perplexity": (
        'textarea[placeholder*="Ask anything"]',
        'textarea[placeholder*="Ask follow-up"]',
        'textarea[placeholder*="Ask"]',
        'textarea[aria-label*="Ask"]',
        'div[contenteditable="true"][aria-label*="Ask"]',
        "textarea",
        'div[contenteditable="true"]',
    ),
    "google": (
        'input[name="q"]',
        'textarea[name="q"]',
        'input[title="Search"]',
        'input[aria-label*="Search"]',
        'input[role="combobox"]',
        'input[type="search"]',
        "textarea",
        'input[type="text"]',
    ),
    "claude": (
        'textarea[placeholder*="message"]',
        'textarea[placeholder*="Message"]',
        'textarea[data-id="root"]',
        "textarea#prompt-textarea",
        'div[contenteditable="true"]',
        "textarea",
        'input[type="text"]',
    ),
}

SUBMIT_SELECTORS: dict[str, tuple[str, ...]] = {
    "chatgpt": (
        'button[data-testid="send-button"]',
        'button[data-testid="fruitjuice-send-button"]',
        "button#composer-submit-button",
        'button[aria-label="Send message"]',
        'button[aria-label="Send prompt"]',
    ),
    "perplexity": (
        'button[aria-label="Submit"]',
        'button[aria-label="Submit Search"]',
        'button[type="submit"]',
        "button.bg-super",
        'button:has(svg[data-icon="arrow-right"])',
    ),
    "google": (
        'button[aria-label="Search"]',
        'button[type="submit"]',
        'input[type="submit"]',
    ),
    "claude": (
        'button[aria-label="Send Message"]',
        'button[aria-label="Send"]',
        'button[data-testid="send-button"]',
        'button[type="submit"]',
        'button:has(svg[viewBox="0 0 32 32"])',
        "button.text-text-200:has(svg)",
        'div[role="button"][aria-label="Send Message"]',
    ),
}


def input_selectors_for(service_id: str) -> tuple[str, ...]:
    """Return the default input selectors for a service, or the generic list."""
    return INPUT_SELECTORS.get(service_id, GENERIC_INPUT_SELECTORS)


def submit_selectors_for(service_id: str) -> tuple[str, ...]:
    """Return the default submit selectors for a service, or the generic list."""
    return SUBMIT_SELECTORS.get(service_id, GENERIC_SUBMIT_SELECTORS)
