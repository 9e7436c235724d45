"""Application configuration: YAML settings plus secrets from the environment.

Everything the adapters need is read here, once, and handed to them at
construction.  Nothing else in the package looks at ``os.environ``.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from geocoach.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/settings.yaml"
DEFAULT_ENV_PATH = ".env"


@dataclass
class LLMConfig:
    openai_api_key: str = ""
    gemini_api_key: str = ""
    model: str = "gpt-4o"
    fallback_model: str = "gemini-2.0-flash"
    max_tokens: int = 4096
    temperature: float = 0.7
    timeout: int = 60
    max_monthly_budget: float = 100.0
    budget_warning_pct: float = 80.0


@dataclass
class SerpApiConfig:
    api_key: str = ""
    base_url: str = "https://serpapi.com/search"
    engine: str = "google"
    country: str = "us"
    language: str = "en"
    timeout: float = 30.0
    page_token_timeout: float = 15.0


@dataclass
class PerplexityConfig:
    api_key: str = ""
    base_url: str = "https://api.perplexity.ai/chat/completions"
    model: str = "sonar"
    max_tokens: int = 1000
    temperature: float = 0.2
    top_p: float = 0.9
    recency_filter: str = "month"
    domain_filter: list[str] = field(default_factory=list)
    timeout: float = 30.0


@dataclass
class AuditConfig:
    user_agent: str = "Mozilla/5.0 (compatible; GEO-AEO-Copy-Coach/1.0)"
    accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
    fetch_timeout: float = 20.0
    max_html_chars: int = 120_000


@dataclass
class AuthConfig:
    enabled: bool = True
    session_tokens: list[str] = field(default_factory=list)
    cookie_name: str = "geocoach_session"
    login_url: str = "/login"


@dataclass
class DatabaseConfig:
    url: str = "sqlite:///data/geocoach.db"
    echo: bool = False


@dataclass
class AppConfig:
    """Top-level configuration object.

    ``strict`` controls what happens when a provider secret is missing:
    strict configs refuse to start, lenient ones start with a warning and
    let the affected adapter answer each call with a ``ConfigError``.
    """

    llm: LLMConfig = field(default_factory=LLMConfig)
    serpapi: SerpApiConfig = field(default_factory=SerpApiConfig)
    perplexity: PerplexityConfig = field(default_factory=PerplexityConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    request_timeout: float = 30.0
    strict: bool = True
    log_level: str = "INFO"

    def missing_secrets(self) -> list[str]:
        """Return the environment variable names of every absent secret."""
        missing = []
        if not (self.llm.openai_api_key or self.llm.gemini_api_key):
            missing.append("OPENAI_API_KEY")
        if not self.serpapi.api_key:
            missing.append("SERPAPI_API_KEY")
        if not self.perplexity.api_key:
            missing.append("PERPLEXITY_API_KEY")
        return missing

    def validate(self) -> None:
        """Raise ``ConfigError`` (strict) or log a warning for missing secrets."""
        missing = self.missing_secrets()
        if self.auth.enabled and not self.auth.session_tokens:
            logger.warning(
                "Authentication is enabled but no session tokens are configured; "
                "every request will be redirected to %s", self.auth.login_url,
            )
        if not missing:
            return
        if self.strict:
            raise ConfigError("Missing required configuration: " + ", ".join(missing))
        logger.warning(
            "Missing configuration (%s); affected tools will fail per request.",
            ", ".join(missing),
        )


def _section(cls, data: Optional[dict[str, Any]]):
    """Build dataclass *cls* from a YAML mapping, ignoring unknown keys."""
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown %s settings: %s", cls.__name__, unknown)
    return cls(**{k: v for k, v in data.items() if k in known})


def _split_tokens(raw: str) -> list[str]:
    return [t.strip() for t in raw.split(",") if t.strip()]


def load_config(
    config_path: str = DEFAULT_CONFIG_PATH,
    env_path: str = DEFAULT_ENV_PATH,
) -> AppConfig:
    """Load ``.env`` and the YAML settings file into an ``AppConfig``.

    Secrets only come from the environment.  Environment values for the
    database URL, log level, and session tokens override the YAML file.
    The returned config is not validated; call ``validate()`` at startup.
    """
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)
        logger.info("Loaded environment from %s", env_path)

    raw: dict[str, Any] = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        logger.info("Configuration loaded from %s", config_path)
    else:
        logger.warning("Config file not found: %s, using defaults.", config_path)

    app_raw = raw.get("app", {}) or {}
    config = AppConfig(
        llm=_section(LLMConfig, raw.get("llm")),
        serpapi=_section(SerpApiConfig, raw.get("serpapi")),
        perplexity=_section(PerplexityConfig, raw.get("perplexity")),
        audit=_section(AuditConfig, raw.get("audit")),
        auth=_section(AuthConfig, raw.get("auth")),
        database=_section(DatabaseConfig, raw.get("database")),
        request_timeout=float(app_raw.get("request_timeout", 30.0)),
        strict=bool(app_raw.get("strict", True)),
        log_level=str(app_raw.get("log_level", "INFO")),
    )

    config.llm.openai_api_key = os.getenv("OPENAI_API_KEY", "")
    config.llm.gemini_api_key = os.getenv("GEMINI_API_KEY", "")
    config.serpapi.api_key = os.getenv("SERPAPI_API_KEY", "")
    config.perplexity.api_key = os.getenv("PERPLEXITY_API_KEY", "")

    if os.getenv("DATABASE_URL"):
        config.database.url = os.environ["DATABASE_URL"]
    if os.getenv("LOG_LEVEL"):
        config.log_level = os.environ["LOG_LEVEL"]
    if os.getenv("GEOCOACH_SESSION_TOKENS"):
        config.auth.session_tokens = _split_tokens(os.environ["GEOCOACH_SESSION_TOKENS"])

    return config
