"""Configuration management for the extraction core.

Handles environment variables, the per-source YAML settings file and default
values. Provides structured configuration classes for the browser session
manager, plain HTTP fetching, the LeetCode query API and per-source
navigation behaviour.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class BrowserConfig(BaseSettings):
    """Headless browser session settings.

    Attributes:
        backend: Automation backend preference: "auto", "driver" or "bundled".
        chromium_executable_path: Path of the minimal Chromium binary used by
            the bundled backend in constrained environments.
        headless: Whether to run the browser without a window.
        idle_timeout_seconds: Browser is torn down after this long without an
            acquisition.
        navigation_timeout_ms: Default timeout of a page navigation.
        content_wait_timeout_ms: Default timeout of a content-presence wait.
        evaluate_timeout_ms: Timeout of one in-page script evaluation.
        block_heavy_resources: Abort image, media, font and tracker requests.
        auto_install_browsers: Run "playwright install chromium" once when the
            driver reports missing browser binaries.
        user_agent: User agent presented by every browsing context.
    """

    model_config = SettingsConfigDict(populate_by_name=True)

    backend: str = Field(default="auto", validation_alias="BROWSER_BACKEND")
    chromium_executable_path: str | None = Field(
        default=None, validation_alias="CHROMIUM_EXECUTABLE_PATH"
    )
    headless: bool = Field(default=True, validation_alias="BROWSER_HEADLESS")
    idle_timeout_seconds: float = Field(default=300.0, validation_alias="BROWSER_IDLE_TIMEOUT")
    navigation_timeout_ms: int = 30000
    content_wait_timeout_ms: int = 10000
    evaluate_timeout_ms: int = 10000
    block_heavy_resources: bool = True
    auto_install_browsers: bool = Field(
        default=True, validation_alias="BROWSER_AUTO_INSTALL"
    )
    user_agent: str = DEFAULT_USER_AGENT


class HttpConfig(BaseSettings):
    """Plain HTTP fetching settings.

    Attributes:
        timeout: Total request timeout in seconds.
        user_agent: User agent sent with static page and API requests.
    """

    model_config = SettingsConfigDict(populate_by_name=True)

    timeout: int = Field(default=20, validation_alias="HTTP_TIMEOUT")
    user_agent: str = DEFAULT_USER_AGENT


class LeetCodeConfig(BaseSettings):
    """LeetCode query API settings.

    Attributes:
        graphql_url: Endpoint of the documented GraphQL API.
        base_url: Site origin, used for Referer/Origin headers.
    """

    model_config = SettingsConfigDict(populate_by_name=True)

    graphql_url: str = Field(
        default="https://leetcode.com/graphql", validation_alias="LEETCODE_GRAPHQL_URL"
    )
    base_url: str = "https://leetcode.com"


class SourceSettings(BaseModel):
    """Navigation behaviour for one browser-backed source.

    Attributes:
        wait_until: Playwright load state awaited by navigation.
        navigation_timeout_ms: Fatal timeout of the navigation itself.
        content_wait_timeout_ms: Non-fatal timeout of the content-presence wait.
        content_selectors: Selectors signalling that the statement rendered.
        settle_ms: Extra delay for client-side rendering after the wait.
    """

    wait_until: str = "domcontentloaded"
    navigation_timeout_ms: int = 30000
    content_wait_timeout_ms: int = 10000
    content_selectors: list[str] = Field(default_factory=list)
    settle_ms: int = 0


class Config:
    """Application configuration manager.

    Centralizes loading of environment-driven settings and the per-source
    YAML file. Provides typed access to configuration sections for the
    different components of the extraction pipeline.
    """

    def __init__(self, config_dir: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_dir: Path to configuration directory, defaults to
                problem_vault/config.
        """
        if config_dir is None:
            config_dir = Path(__file__).parent / "config"

        self.config_dir = Path(config_dir)

        self.browser = BrowserConfig()
        self.http = HttpConfig()
        self.leetcode = LeetCodeConfig()
        self.sources = self._load_source_settings()

    def _load_source_settings(self) -> dict[str, SourceSettings]:
        """Load per-source navigation settings from YAML configuration.

        Returns:
            Mapping of platform name to its settings; empty if no file exists.
        """
        sources_path = self.config_dir / "sources.yml"
        if not sources_path.exists():
            return {}

        with open(sources_path) as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}

        sources: dict[str, SourceSettings] = {}
        for name, values in (data.get("sources") or {}).items():
            sources[name] = SourceSettings(**(values or {}))
        return sources

    def source(self, platform: str) -> SourceSettings:
        """Get navigation settings for a platform.

        Args:
            platform: Platform name (e.g. 'atcoder').

        Returns:
            Configured settings, or defaults when the platform is not listed.
        """
        return self.sources.get(platform, SourceSettings())


# Global configuration instance
config = Config()
