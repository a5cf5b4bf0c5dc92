"""Dependency-injection container.

Wires the extraction core together: one shared browser session manager, the
four source extractors, the registry the dispatcher routes through, the
problem store and the archiver on top. Every component takes its settings
from the config provider, so overriding it reconfigures the whole graph.
"""

from dependency_injector import containers, providers

from ..config import config as app_config
from ..pipeline.archiver import ProblemArchiver
from ..pipeline.dispatcher import ProblemDispatcher
from ..scrapers.atcoder import AtCoderExtractor
from ..scrapers.base import ExtractorProtocol, ExtractorRegistry
from ..scrapers.codechef import CodeChefExtractor
from ..scrapers.codeforces import CodeforcesExtractor
from ..scrapers.leetcode import LeetCodeExtractor
from ..services.browser_session import BrowserSessionManager
from ..services.problem_store import InMemoryProblemStore


def build_registry(*extractors: ExtractorProtocol) -> ExtractorRegistry:
    """Create a registry holding the given extractors."""
    registry = ExtractorRegistry()
    for extractor in extractors:
        registry.register(extractor)
    return registry


class Container(containers.DeclarativeContainer):
    """DI container for the extraction core.

    This container holds the wiring for all the application's components.
    """

    config = providers.Object(app_config)

    # Services
    session_manager = providers.Singleton(BrowserSessionManager, settings=config.provided.browser)
    store = providers.Singleton(InMemoryProblemStore)

    # Extractors
    codeforces_extractor = providers.Singleton(
        CodeforcesExtractor,
        session_manager=session_manager,
        http_config=config.provided.http,
        source_settings=config.provided.source.call("codeforces"),
    )
    atcoder_extractor = providers.Singleton(
        AtCoderExtractor,
        session_manager=session_manager,
        source_settings=config.provided.source.call("atcoder"),
    )
    codechef_extractor = providers.Singleton(
        CodeChefExtractor,
        session_manager=session_manager,
        source_settings=config.provided.source.call("codechef"),
    )
    leetcode_extractor = providers.Singleton(
        LeetCodeExtractor,
        leetcode_config=config.provided.leetcode,
        http_config=config.provided.http,
    )

    registry = providers.Singleton(
        build_registry,
        codeforces_extractor,
        leetcode_extractor,
        atcoder_extractor,
        codechef_extractor,
    )

    # Pipeline
    dispatcher = providers.Singleton(ProblemDispatcher, registry=registry)
    archiver = providers.Singleton(ProblemArchiver, dispatcher=dispatcher, store=store)


_container: Container | None = None


def get_container() -> Container:
    """Get the process-wide container, creating it on first use."""
    global _container
    if _container is None:
        _container = Container()
    return _container
