"""Browser automation backends for the session manager.

Two interchangeable ways of getting a Chromium instance driven by Playwright:

- PlaywrightDriverBackend: the locally installed Playwright Chromium, used on
  developer machines and regular servers. Missing browser binaries trigger a
  single "playwright install chromium" attempt.
- BundledChromiumBackend: a minimal Chromium executable shipped for
  constrained/serverless environments, launched with flags that work without
  a writable /dev/shm or a sandbox.

select_backends() probes the environment once and returns the backends in
order of preference.
"""

import asyncio
import logging
import os
import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from playwright.async_api import Browser, Playwright, async_playwright

from ..config import BrowserConfig

logger = logging.getLogger(__name__)

SERVERLESS_ENV_MARKERS = ("AWS_LAMBDA_FUNCTION_NAME", "VERCEL")

DRIVER_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-extensions",
    "--disable-blink-features=AutomationControlled",
]

BUNDLED_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--single-process",
    "--no-zygote",
    "--hide-scrollbars",
    "--mute-audio",
    "--disable-extensions",
    "--disable-blink-features=AutomationControlled",
]


class AutomationBackend(Protocol):
    """Capability interface shared by all automation backends.

    Methods:
        launch: Start a browser process and return its handle.
        shutdown: Release everything the last launch acquired.
    """

    name: str

    async def launch(self) -> Browser:
        """Start a headless browser.

        Returns:
            Connected Playwright Browser.
        """
        ...

    async def shutdown(self) -> None:
        """Stop the automation driver started by launch()."""
        ...


class PlaywrightDriverBackend:
    """Locally installed Playwright Chromium."""

    name = "driver"

    def __init__(self, settings: BrowserConfig) -> None:
        self.settings = settings
        self._playwright: Playwright | None = None
        self._install_attempted = False

    async def launch(self) -> Browser:
        """Start Playwright and launch its bundled Chromium.

        Raises:
            Exception: Whatever Playwright raised when the launch failed even
                after the optional browser installation.
        """
        await self.shutdown()
        self._playwright = await async_playwright().start()

        try:
            return await self._launch_chromium(self._playwright)
        except Exception as e:
            if (
                self.settings.auto_install_browsers
                and not self._install_attempted
                and _needs_browser_install(str(e))
            ):
                logger.warning("Playwright browsers missing; attempting automatic installation...")
                self._install_attempted = True
                if await _ensure_playwright_browsers_installed():
                    logger.info("Playwright browsers installed successfully, retrying launch.")
                    try:
                        return await self._launch_chromium(self._playwright)
                    except Exception:
                        await self.shutdown()
                        raise

            await self.shutdown()
            raise

    async def _launch_chromium(self, playwright: Playwright) -> Browser:
        return await playwright.chromium.launch(
            headless=self.settings.headless,
            args=DRIVER_LAUNCH_ARGS,
        )

    async def shutdown(self) -> None:
        if self._playwright is None:
            return
        try:
            await self._playwright.stop()
        except Exception as e:
            logger.warning(f"Error stopping playwright driver: {e}")
        finally:
            self._playwright = None


class BundledChromiumBackend:
    """Minimal Chromium binary for restricted server environments."""

    name = "bundled"

    def __init__(self, settings: BrowserConfig, executable_path: str | None = None) -> None:
        self.settings = settings
        self.executable_path = executable_path or settings.chromium_executable_path
        self._playwright: Playwright | None = None

    async def launch(self) -> Browser:
        """Launch the configured Chromium executable through Playwright.

        Raises:
            FileNotFoundError: No executable configured or it does not exist.
        """
        if not self.executable_path:
            raise FileNotFoundError("No bundled Chromium executable configured")
        if not Path(self.executable_path).exists():
            raise FileNotFoundError(f"Chromium executable not found at {self.executable_path}")

        await self.shutdown()
        self._playwright = await async_playwright().start()
        try:
            return await self._playwright.chromium.launch(
                executable_path=self.executable_path,
                headless=True,
                args=BUNDLED_LAUNCH_ARGS,
            )
        except Exception:
            await self.shutdown()
            raise

    async def shutdown(self) -> None:
        if self._playwright is None:
            return
        try:
            await self._playwright.stop()
        except Exception as e:
            logger.warning(f"Error stopping playwright for bundled chromium: {e}")
        finally:
            self._playwright = None


def is_serverless(environ: Mapping[str, str] | None = None) -> bool:
    """Check whether we run inside a serverless platform."""
    env = os.environ if environ is None else environ
    return any(env.get(marker) for marker in SERVERLESS_ENV_MARKERS)


def select_backends(
    settings: BrowserConfig, environ: Mapping[str, str] | None = None
) -> list[AutomationBackend]:
    """Choose automation backends in order of preference.

    Args:
        settings: Browser configuration.
        environ: Environment to probe, defaults to os.environ.

    Returns:
        Backends to try in order. Serverless environments only get the
        bundled binary; otherwise the full driver comes first and the bundled
        binary is kept as fallback when an executable path is configured.
    """
    preference = settings.backend.lower()
    driver = PlaywrightDriverBackend(settings)
    bundled = BundledChromiumBackend(settings)

    if preference == "driver":
        return [driver]
    if preference == "bundled" or is_serverless(environ):
        return [bundled]

    backends: list[AutomationBackend] = [driver]
    if settings.chromium_executable_path:
        backends.append(bundled)
    return backends


def _needs_browser_install(message: str) -> bool:
    lowered = message.lower()
    return "executable doesn't exist" in lowered or "playwright install" in lowered


async def _ensure_playwright_browsers_installed() -> bool:
    """Attempt to install Playwright Chromium binaries on demand."""
    try:
        cmd = ["playwright", "install", "chromium"]
        logger.info("Running %s", " ".join(shlex.quote(part) for part in cmd))
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        stdout, _ = await process.communicate()
        if stdout:
            logger.info(stdout.decode(errors="ignore"))
        if process.returncode == 0:
            return True

        logger.error("playwright install chromium exited with %s", process.returncode)
        return False
    except Exception as exc:
        logger.error(f"Automatic Playwright installation failed: {exc}")
        return False
