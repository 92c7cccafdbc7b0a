"""
Shared browser engine and per-request isolated sessions.

One Chromium process serves every quote request. Each request gets its own
BrowserContext (separate cookies and storage) with a single page, so
concurrent requests never see each other's state. Only the "is the engine
alive" check is serialized; page work runs in parallel across contexts.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from motorquote.browser_config import BrowserConfig
from motorquote.errors import EngineUnavailable

logger = logging.getLogger(__name__)


@dataclass
class ResourceStatus:
    """Current status of the browser resource."""
    running: bool
    launches: int
    sessions_opened: int
    sessions_open: int
    uptime_seconds: float


class IsolatedSession:
    """
    One isolated browsing context and its single page.

    Usage:
        session = await factory.open_session()
        try:
            await session.page.goto(url)
        finally:
            await session.close()

    or as ``async with await factory.open_session() as session``.
    """

    def __init__(self, context: Any, page: Any, on_close=None):
        self.context = context
        self.page = page
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Close page and context. Safe to call more than once; never raises."""
        if self._closed:
            return
        self._closed = True

        try:
            await self.page.close()
        except Exception as e:
            logger.debug(f"Error closing page: {e}")

        try:
            await self.context.close()
        except Exception as e:
            logger.warning(f"Error closing browser context: {e}")

        if self._on_close:
            self._on_close()

    async def __aenter__(self) -> "IsolatedSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class SessionFactory:
    """Opens isolated sessions on a live browser."""

    def __init__(self, browser: Any, config: BrowserConfig, resource: "BrowserResource | None" = None):
        self._browser = browser
        self._config = config
        self._resource = resource

    async def open_session(self) -> IsolatedSession:
        """
        Create an isolated context with one page.

        Requests to blocked ad/tracking hosts are aborted; everything else,
        including the backend calls the vehicle resolver inspects, passes through.
        """
        context = await self._browser.new_context(
            viewport={
                "width": self._config.viewport_width,
                "height": self._config.viewport_height,
            },
            user_agent=self._config.get_user_agent(),
            locale=self._config.locale,
            timezone_id=self._config.timezone_id,
            ignore_https_errors=self._config.ignore_https_errors,
        )

        try:
            context.set_default_timeout(self._config.timeout)

            blocked = self._config.blocked_url_pattern()
            if blocked is not None:
                await context.route(blocked, _abort_route)

            page = await context.new_page()
        except BaseException:
            # Includes cancellation by the caller deadline
            await context.close()
            raise

        on_close = None
        if self._resource is not None:
            self._resource._sessions_open += 1
            self._resource._sessions_opened += 1
            on_close = self._resource._session_closed

        logger.debug("Opened isolated browser session")
        return IsolatedSession(context, page, on_close=on_close)


async def _abort_route(route) -> None:
    await route.abort()


class BrowserResource:
    """
    Owns the single browser engine shared by all quote requests.

    Features:
    - Lazy start on first acquire()
    - Restart when the engine reports disconnection
    - Graceful shutdown
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        """
        Initialize the resource. Nothing is launched until acquire().

        Args:
            config: Browser configuration (defaults to BrowserConfig())
        """
        self.config = config or BrowserConfig()

        self._playwright = None
        self._browser = None
        self._lock = asyncio.Lock()
        self._start_time: datetime | None = None
        self._launches = 0
        self._sessions_opened = 0
        self._sessions_open = 0

    async def acquire(self) -> SessionFactory:
        """
        Return a session factory bound to a live browser.

        Raises:
            EngineUnavailable: if the engine cannot be started
        """
        async with self._lock:
            if not self._is_alive():
                await self._restart()
            return SessionFactory(self._browser, self.config, resource=self)

    def _is_alive(self) -> bool:
        if self._browser is None:
            return False
        try:
            return self._browser.is_connected()
        except Exception:
            return False

    async def _restart(self) -> None:
        if self._browser is not None:
            logger.warning("Browser disconnected, starting a new instance")
            await self._close_engine()

        try:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            browser_type = getattr(self._playwright, self.config.browser_type)
            self._browser = await browser_type.launch(
                headless=self.config.headless,
                args=self.config.launch_args,
            )
        except Exception as e:
            await self._close_engine()
            raise EngineUnavailable(f"Browser engine could not be started: {e}") from e

        self._launches += 1
        self._start_time = datetime.now()
        logger.info(
            f"Browser started ({self.config.browser_type}, headless={self.config.headless})"
        )

    async def _close_engine(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self._playwright = None

    async def shutdown(self) -> None:
        """Close the browser engine. A later acquire() starts a new one."""
        async with self._lock:
            if self._browser is None and self._playwright is None:
                return
            await self._close_engine()
            self._start_time = None
            logger.info("Browser stopped")

    def _session_closed(self) -> None:
        self._sessions_open = max(0, self._sessions_open - 1)

    def get_status(self) -> ResourceStatus:
        """Get current resource status."""
        uptime = 0.0
        if self._start_time:
            uptime = (datetime.now() - self._start_time).total_seconds()

        return ResourceStatus(
            running=self._is_alive(),
            launches=self._launches,
            sessions_opened=self._sessions_opened,
            sessions_open=self._sessions_open,
            uptime_seconds=uptime,
        )

    @property
    def is_running(self) -> bool:
        """Whether a connected browser is held."""
        return self._is_alive()
