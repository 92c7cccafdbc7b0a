"""
Browser settings for the engine that drives the quote form.

Launch options apply to the shared engine; viewport, user agent, locale,
timeouts and request blocking apply to every isolated context opened on it.
"""
import random
import re
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from motorquote.constants import BLOCKED_DOMAINS


# Desktop Chrome, as an Australian visitor would present. The first entry is the default.
USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
]


def get_random_user_agent() -> str:
    return random.choice(USER_AGENTS)


class BrowserConfig(BaseModel):
    """Validated settings for the shared browser engine and its contexts."""

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to launch"
    )

    timeout: int = Field(
        default=20000,
        description="Default timeout for page operations in milliseconds",
        ge=1000,
        le=300000
    )

    viewport_width: int = Field(default=1280, ge=320, le=3840)

    viewport_height: int = Field(default=900, ge=320, le=2160)

    locale: str = Field(
        default="en-AU",
        description="Browser locale reported to the site"
    )

    timezone_id: Optional[str] = Field(
        default="Australia/Melbourne",
        description="Timezone reported to the site"
    )

    user_agent: Optional[str] = Field(
        default=None,
        description="Custom user agent. If None and rotate_user_agent=True, a random one is used."
    )

    rotate_user_agent: bool = Field(
        default=False,
        description="Pick a random user agent for each new context"
    )

    launch_args: List[str] = Field(
        default_factory=lambda: ["--no-sandbox", "--disable-setuid-sandbox"],
        description="Additional browser launch arguments"
    )

    blocked_domains: List[str] = Field(
        default_factory=lambda: list(BLOCKED_DOMAINS),
        description="Ad/tracking hosts whose requests are aborted"
    )

    ignore_https_errors: bool = Field(default=True)

    class Config:
        """Pydantic model configuration."""
        frozen = False
        validate_assignment = True

    def get_user_agent(self) -> str:
        """Get the user agent to use for this config."""
        if self.user_agent:
            return self.user_agent
        if self.rotate_user_agent:
            return get_random_user_agent()
        return USER_AGENTS[0]

    def blocked_url_pattern(self) -> Optional[re.Pattern]:
        """Regex matching any URL on a blocked host (or its subdomains)."""
        if not self.blocked_domains:
            return None
        hosts = "|".join(re.escape(d) for d in self.blocked_domains)
        return re.compile(rf"^[a-z]+://([^/]*\.)?({hosts})(:\d+)?(/|$)", re.IGNORECASE)


# --- Pre-configured Instances for Common Use Cases ---

DEFAULT_CONFIG = BrowserConfig()
"""
Headless configuration used by the quote service.
"""

DEBUG_CONFIG = BrowserConfig(
    headless=False,
    timeout=60000,
    blocked_domains=[],
)
"""
Visible browser with generous timeouts and no request blocking.

Best for watching the form flow while tuning selectors.
"""
