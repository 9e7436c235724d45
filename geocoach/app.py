"""Main application object: configuration, database, and lazily built services."""

import logging
from typing import Any, Optional

from geocoach.config import AppConfig, load_config

logger = logging.getLogger(__name__)


class GeoCoach:
    """Central application class that wires the tools together.

    The HTTP API, the CLI, and the dashboard all go through one instance.
    Secrets are validated once in :meth:`initialize`, and every adapter
    receives its own config section at construction.

    Usage::

        coach = GeoCoach()
        coach.initialize()
        queries = await coach.get_query_generator().generate("Dr. Smith")
        results = await coach.get_serp_client().search_all(queries)
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        config_path: str = "config/settings.yaml",
        env_path: str = ".env",
    ):
        self._config_path = config_path
        self._env_path = env_path
        self.config: Optional[AppConfig] = config
        self._initialized = False
        self._llm_client = None
        self._serp_client = None
        self._perplexity_client = None
        self._query_generator = None
        self._auditor = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Load and validate configuration, then initialise the database.

        Raises:
            ConfigError: A required secret is missing and the config is strict.
        """
        if self._initialized:
            return

        if self.config is None:
            self.config = load_config(self._config_path, self._env_path)
        self.config.validate()

        from geocoach.database import init_db
        init_db(database_url=self.config.database.url, echo=self.config.database.echo)

        self._initialized = True
        logger.info("GeoCoach initialised.")

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.initialize()

    # ------------------------------------------------------------------
    # Lazy accessors
    # ------------------------------------------------------------------

    def get_llm_client(self):
        """Lazy-initialise and return the LLM client."""
        if self._llm_client is None:
            self._ensure_initialized()
            from geocoach.integrations.llm_client import LLMClient
            self._llm_client = LLMClient(self.config.llm)
        return self._llm_client

    def get_serp_client(self):
        if self._serp_client is None:
            self._ensure_initialized()
            from geocoach.integrations.serpapi_client import SerpApiClient
            self._serp_client = SerpApiClient(self.config.serpapi)
        return self._serp_client

    def get_perplexity_client(self):
        if self._perplexity_client is None:
            self._ensure_initialized()
            from geocoach.integrations.perplexity_client import PerplexityClient
            self._perplexity_client = PerplexityClient(self.config.perplexity)
        return self._perplexity_client

    def get_query_generator(self):
        if self._query_generator is None:
            from geocoach.modules.visibility.query_generator import QueryGenerator
            self._query_generator = QueryGenerator(self.get_llm_client())
        return self._query_generator

    def get_auditor(self):
        if self._auditor is None:
            self._ensure_initialized()
            from geocoach.modules.copy_coach.auditor import CopyCoachAuditor
            self._auditor = CopyCoachAuditor(self.get_llm_client(), self.config.audit)
        return self._auditor

    def visibility_session(self, provider: str):
        """Return a fresh :class:`VisibilitySession` for ``serp`` or ``perplexity``."""
        from geocoach.modules.visibility.fanout import VisibilitySession
        adapters = {
            "serp": self.get_serp_client,
            "perplexity": self.get_perplexity_client,
        }
        factory = adapters.get(provider)
        if factory is None:
            raise ValueError(f"Unknown visibility provider: {provider!r}")
        return VisibilitySession(factory(), self.get_query_generator())

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        """Return which providers are configured (never the secrets)."""
        self._ensure_initialized()
        return {
            "initialized": self._initialized,
            "missing_secrets": self.config.missing_secrets(),
            "database": self.config.database.url.split("://", 1)[0],
            "auth_enabled": self.config.auth.enabled,
        }
