"""Shared headless browser session manager.

Keeps at most one live browser for the whole process and hands out isolated
browsing contexts to extractors. The browser is launched lazily on first use,
concurrent first callers share one launch, and an idle timer closes the
browser after a period without acquisitions. A browser that crashes or
disconnects is forgotten so the next acquisition relaunches it.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, Route
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import BrowserConfig, config
from ..errors import AutomationUnavailableError, SourceUnreachableError
from .browser_backends import AutomationBackend, select_backends

logger = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = ("image", "media", "font")
TRACKER_DOMAINS = (
    "google-analytics",
    "googletagmanager",
    "facebook",
    "twitter",
    "doubleclick",
    "adsystem",
    "hotjar",
    "clarity.ms",
)

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined,
});

window.chrome = {
    runtime: {},
    loadTimes: function() {},
    csi: function() {},
    app: {}
};

Object.defineProperty(navigator, 'plugins', {
    get: () => [1, 2, 3, 4, 5],
});

Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
});
"""


class PageEvaluationError(RuntimeError):
    """In-page script evaluation failed or exceeded its timeout."""


class BrowsingContext:
    """Isolated browsing context with a single page.

    Thin wrapper over a Playwright BrowserContext exposing only what the
    extractors need: navigate, wait for content, evaluate scripts and read
    the rendered markup.
    """

    def __init__(self, context: BrowserContext, settings: BrowserConfig) -> None:
        self._context = context
        self._settings = settings
        self._page: Page | None = None
        self.closed = False

    async def _get_page(self) -> Page:
        if self._page is None:
            self._page = await self._context.new_page()
        return self._page

    @property
    def current_url(self) -> str | None:
        return self._page.url if self._page is not None else None

    async def navigate(
        self,
        url: str,
        wait_until: str = "domcontentloaded",
        timeout_ms: int | None = None,
    ) -> int | None:
        """Load a URL in the context page.

        Args:
            url: Page to open.
            wait_until: Playwright load state to await.
            timeout_ms: Navigation timeout, defaults to the configured one.

        Returns:
            HTTP status of the main document, None if not reported.

        Raises:
            SourceUnreachableError: Navigation timed out or failed at the
                network level.
        """
        page = await self._get_page()
        timeout = timeout_ms or self._settings.navigation_timeout_ms
        try:
            response = await page.goto(url, wait_until=wait_until, timeout=timeout)  # type: ignore[arg-type]
        except PlaywrightTimeoutError as e:
            raise SourceUnreachableError(
                f"Timed out after {timeout}ms loading page", url=url, original_exception=e
            ) from e
        except PlaywrightError as e:
            raise SourceUnreachableError(
                f"Navigation failed: {e.message}", url=url, original_exception=e
            ) from e

        return response.status if response is not None else None

    async def wait_for(self, selectors: str | list[str], timeout_ms: int | None = None) -> bool:
        """Wait until any of the selectors is present.

        Expiry is not an error: callers parse whatever has rendered.

        Returns:
            True if a matching element appeared in time.
        """
        if isinstance(selectors, str):
            selectors = [selectors]
        if not selectors:
            return True

        page = await self._get_page()
        timeout = timeout_ms or self._settings.content_wait_timeout_ms
        try:
            await page.wait_for_selector(", ".join(selectors), timeout=timeout, state="attached")
            return True
        except PlaywrightTimeoutError:
            logger.debug(f"Content selectors {selectors} not found within {timeout}ms")
            return False
        except PlaywrightError as e:
            logger.debug(f"Content wait failed: {e.message}")
            return False

    async def settle(self, delay_ms: int) -> None:
        """Give client-side rendering extra time."""
        if delay_ms > 0:
            page = await self._get_page()
            await page.wait_for_timeout(delay_ms)

    async def evaluate(self, script: str, arg: Any = None, timeout_ms: int | None = None) -> Any:
        """Run a script inside the page and return its JSON-serializable result.

        Raises:
            PageEvaluationError: Script threw or did not finish in time.
        """
        page = await self._get_page()
        timeout = (timeout_ms or self._settings.evaluate_timeout_ms) / 1000
        try:
            return await asyncio.wait_for(page.evaluate(script, arg), timeout=timeout)
        except TimeoutError as e:
            raise PageEvaluationError(f"In-page evaluation timed out after {timeout}s") from e
        except PlaywrightError as e:
            raise PageEvaluationError(f"In-page evaluation failed: {e.message}") from e

    async def content(self) -> str:
        """Return the current rendered markup of the page."""
        page = await self._get_page()
        return await page.content()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self._context.close()
        except Exception as e:
            logger.warning(f"Error closing browsing context: {e}")


async def _route_handler(route: Route) -> None:
    """Abort heavy media and tracker requests."""
    request = route.request
    if request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    elif any(domain in request.url for domain in TRACKER_DOMAINS):
        await route.abort()
    else:
        await route.continue_()


class BrowserSessionManager:
    """Process-wide owner of the headless browser.

    Attributes:
        settings: Browser configuration in use.
    """

    def __init__(
        self,
        settings: BrowserConfig | None = None,
        backends: list[AutomationBackend] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings or config.browser
        self._backends = backends if backends is not None else select_backends(self.settings, environ)
        self._browser: Browser | None = None
        self._active_backend: AutomationBackend | None = None
        self._launch_task: asyncio.Task[Browser] | None = None
        self._lock = asyncio.Lock()
        self._idle_task: asyncio.Task[None] | None = None
        self._open_contexts: set[BrowsingContext] = set()
        self._stats = {
            "launches": 0,
            "launch_failures": 0,
            "contexts_created": 0,
            "idle_shutdowns": 0,
            "disconnects": 0,
        }

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def acquire_context(self) -> BrowsingContext:
        """Get a fresh isolated browsing context.

        Launches the browser when none is live and resets the idle timer.

        Raises:
            AutomationUnavailableError: No backend could start a browser, or
                the browser died before the context was created.
        """
        self._reset_idle_timer()
        browser = await self._ensure_browser()

        try:
            raw_context = await browser.new_context(
                user_agent=self.settings.user_agent,
                viewport={"width": 1366, "height": 768},
                java_script_enabled=True,
                locale="en-US",
                extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
            )
            await raw_context.add_init_script(STEALTH_INIT_SCRIPT)
            if self.settings.block_heavy_resources:
                await raw_context.route("**/*", _route_handler)
        except PlaywrightError as e:
            self._forget_browser(browser)
            raise AutomationUnavailableError(
                f"Browser became unusable: {e.message}", original_exception=e
            ) from e

        handle = BrowsingContext(raw_context, self.settings)
        self._open_contexts.add(handle)
        self._stats["contexts_created"] += 1
        return handle

    async def release_context(self, handle: BrowsingContext) -> None:
        """Close a context obtained from acquire_context()."""
        self._open_contexts.discard(handle)
        await handle.close()

    @asynccontextmanager
    async def context(self) -> AsyncIterator[BrowsingContext]:
        """Acquire a browsing context released on exit, even on error."""
        handle = await self.acquire_context()
        try:
            yield handle
        finally:
            await self.release_context(handle)

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            if self._launch_task is None or self._launch_task.done():
                self._launch_task = asyncio.create_task(self._launch())
            launch_task = self._launch_task

        # One cancelled waiter must not cancel the launch for everyone else
        return await asyncio.shield(launch_task)

    async def _launch(self) -> Browser:
        errors: list[str] = []
        for backend in self._backends:
            try:
                logger.info(f"Launching headless browser with {backend.name} backend")
                browser = await backend.launch()
            except Exception as e:
                logger.warning(f"Browser backend {backend.name} failed to launch: {e}")
                errors.append(f"{backend.name}: {e}")
                continue

            browser.on("disconnected", self._on_disconnected)
            self._browser = browser
            self._active_backend = backend
            self._stats["launches"] += 1
            logger.info(f"Headless browser started with {backend.name} backend")
            return browser

        self._stats["launch_failures"] += 1
        detail = "; ".join(errors) if errors else "no automation backend configured"
        raise AutomationUnavailableError(f"Headless browser unavailable ({detail})")

    def _on_disconnected(self, browser: Browser) -> None:
        if browser is self._browser:
            logger.warning("Headless browser disconnected; it will be relaunched on next use")
            self._stats["disconnects"] += 1
            self._forget_browser(browser)

    def _forget_browser(self, browser: Browser) -> None:
        if browser is self._browser:
            self._browser = None
            self._launch_task = None

    def _reset_idle_timer(self) -> None:
        if self._idle_task is not None and not self._idle_task.done():
            self._idle_task.cancel()
        self._idle_task = asyncio.create_task(self._idle_watchdog())

    async def _idle_watchdog(self) -> None:
        while True:
            await asyncio.sleep(self.settings.idle_timeout_seconds)
            if not self._open_contexts:
                break
            logger.debug(
                f"Idle timeout reached with {len(self._open_contexts)} open contexts, deferring"
            )

        if self._browser is None:
            return
        logger.info(
            f"Closing headless browser after {self.settings.idle_timeout_seconds:.0f}s idle"
        )
        self._stats["idle_shutdowns"] += 1
        await self._close_browser()

    async def _close_browser(self) -> None:
        async with self._lock:
            browser, backend = self._browser, self._active_backend
            self._browser = None
            self._active_backend = None
            self._launch_task = None

        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning(f"Error closing headless browser: {e}")
        if backend is not None:
            await backend.shutdown()

    async def shutdown(self) -> None:
        """Close all contexts and the browser, and stop the idle timer."""
        idle_task = self._idle_task
        self._idle_task = None
        if idle_task is not None and idle_task is not asyncio.current_task() and not idle_task.done():
            idle_task.cancel()

        for handle in list(self._open_contexts):
            await self.release_context(handle)

        await self._close_browser()
        logger.debug("Browser session manager shut down")

    def get_stats(self) -> dict[str, Any]:
        """Get session manager statistics."""
        return {
            **self._stats,
            "running": self.is_running,
            "open_contexts": len(self._open_contexts),
            "backend": self._active_backend.name if self._active_backend else None,
            "backends": [backend.name for backend in self._backends],
        }
