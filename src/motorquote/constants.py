# src/motorquote/constants.py
"""Centralized constants for the quote flow.

Values the operator is expected to tune live in config.py
(ScraperConfig, ExtractionRules) and selector_library.py.
"""

# =============================================================================
# Target form
# =============================================================================

DEFAULT_QUOTE_URL = "https://my.racv.com.au/s/motor-insurance?p=CAR"

# Ad and tracking hosts aborted at the context level
BLOCKED_DOMAINS = [
    "doubleclick.net",
    "googleads.g.doubleclick.net",
    "googlesyndication.com",
    "adsrvr.org",
    "facebook.net",
    "connect.facebook.net",
    "bat.bing.com",
    "hotjar.com",
    "taboola.com",
    "outbrain.com",
]

# Excess levels the form offers on the cover step
EXCESS_TIERS = [500.0, 650.0, 800.0, 1000.0, 1200.0, 1500.0, 2000.0]


# =============================================================================
# Timing
# =============================================================================

DEFAULT_NAVIGATION_TIMEOUT_MS = 20000

# Timeout for a single element/response wait inside a step
DEFAULT_STEP_TIMEOUT_MS = 10000

# Pause after a selection so dependent fields can re-render
DEFAULT_SETTLE_MS = 1500

# Grace period for a late lookup response after "not found" is shown
LOOKUP_RESPONSE_GRACE_MS = 2000

# Wait for the premium or an error banner after the final submit
DEFAULT_RESULT_TIMEOUT_MS = 30000

DEFAULT_OVERALL_TIMEOUT_SECONDS = 180.0


# =============================================================================
# Retry limits
# =============================================================================

DEFAULT_LOOKUP_ATTEMPTS = 3

DEFAULT_MAX_RECOVERY_CYCLES = 1


# =============================================================================
# Reporting
# =============================================================================

# Characters of final page text kept on extraction failure
RAW_TEXT_LIMIT = 1000

# Options logged when a dropdown has no match
MAX_LOGGED_OPTIONS = 20

RESULT_SOURCE = "insurer_website"
