"""
Runtime constants for Hyperchat.

Values here are not exposed through the YAML configuration. Warm-up and
strategy timeouts bound how long one slow service can hold up a window.
"""

# Maximum time for a session to load its home page (per attempt)
WARMUP_TIMEOUT_SECONDS = 30.0

# Maximum time for one automation strategy attempt to submit a prompt
STRATEGY_TIMEOUT_SECONDS = 20.0

# Warm-up and strategy execution each get exactly one retry
MAX_RETRIES = 1

# How long simulated input waits for any input selector to match
INPUT_LOCATE_TIMEOUT_SECONDS = 5.0

# Pause between inserting text and submitting, lets frameworks re-render
SUBMIT_SETTLE_SECONDS = 0.3

# Delay before reloading a crashed engine (once per session)
CRASH_RECOVERY_DELAY_SECONDS = 1.0
MAX_CRASH_RECOVERIES = 1

# Delay between the last window closing and dropping to background presence
BACKGROUND_DEBOUNCE_SECONDS = 0.25

# Column layout (points)
COLUMN_SPACING = 20.0
COLUMN_SIDE_MARGIN = 20.0
MIN_COLUMN_WIDTH = 280.0
MAX_COLUMN_WIDTH = 1200.0

# Default conversation window size
DEFAULT_WINDOW_WIDTH = 1200
DEFAULT_WINDOW_HEIGHT = 800

# Maximum prompt length accepted by the Orchestrator
MAX_PROMPT_LENGTH = 100_000

# Favicon fetching
FAVICON_TIMEOUT_SECONDS = 5.0
FAVICON_PATHS = ("/favicon.ico", "/apple-touch-icon.png")

# Environment variable naming the default configuration file
CONFIG_ENV_VAR = "HYPERCHAT_CONFIG"

# Upper bound for one query to the platform workspace signal
WORKSPACE_QUERY_TIMEOUT_SECONDS = 1.0
