"""Tests for configuration loading and startup validation."""

import pytest

from geocoach.app import GeoCoach
from geocoach.config import AppConfig, AuthConfig, LLMConfig, SerpApiConfig, load_config
from geocoach.errors import ConfigError

_ENV_VARS = (
    "OPENAI_API_KEY", "GEMINI_API_KEY", "SERPAPI_API_KEY", "PERPLEXITY_API_KEY",
    "DATABASE_URL", "LOG_LEVEL", "GEOCOACH_SESSION_TOKENS",
)


@pytest.fixture()
def clean_env(monkeypatch):
    # setenv first so teardown also removes values loaded from a .env file.
    for name in _ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestLoadConfig:

    def test_yaml_values_and_env_secrets(self, tmp_path, clean_env):
        settings = tmp_path / "settings.yaml"
        settings.write_text(
            "app:\n  request_timeout: 12\n  strict: false\n"
            "serpapi:\n  country: ca\n  api_key: ignored-from-yaml\n"
            "perplexity:\n  model: sonar-pro\n"
            "auth:\n  login_url: /signin\n",
            encoding="utf-8",
        )
        clean_env.setenv("SERPAPI_API_KEY", "serp-env")
        clean_env.setenv("GEOCOACH_SESSION_TOKENS", "one, two ,")

        config = load_config(str(settings), str(tmp_path / "missing.env"))

        assert config.request_timeout == 12.0
        assert config.strict is False
        assert config.serpapi.country == "ca"
        assert config.serpapi.api_key == "serp-env"
        assert config.perplexity.model == "sonar-pro"
        assert config.auth.login_url == "/signin"
        assert config.auth.session_tokens == ["one", "two"]

    def test_missing_file_gives_defaults(self, tmp_path, clean_env):
        config = load_config(str(tmp_path / "nope.yaml"), str(tmp_path / "nope.env"))
        assert config.perplexity.model == "sonar"
        assert config.perplexity.domain_filter == []
        assert config.audit.max_html_chars == 120_000
        assert config.request_timeout == 30.0

    def test_unknown_keys_ignored(self, tmp_path, clean_env):
        settings = tmp_path / "settings.yaml"
        settings.write_text("llm:\n  model: gpt-4o-mini\n  flavour: spicy\n", encoding="utf-8")
        config = load_config(str(settings), str(tmp_path / "nope.env"))
        assert config.llm.model == "gpt-4o-mini"

    def test_env_file_loaded(self, tmp_path, clean_env):
        env_file = tmp_path / ".env"
        env_file.write_text("PERPLEXITY_API_KEY=pplx-from-file\nDATABASE_URL=sqlite:///:memory:\n", encoding="utf-8")
        config = load_config(str(tmp_path / "nope.yaml"), str(env_file))
        assert config.perplexity.api_key == "pplx-from-file"
        assert config.database.url == "sqlite:///:memory:"


class TestValidate:

    def test_missing_secrets_listed(self):
        config = AppConfig(llm=LLMConfig(gemini_api_key="g"), serpapi=SerpApiConfig(api_key="s"))
        assert config.missing_secrets() == ["PERPLEXITY_API_KEY"]

    def test_strict_raises(self):
        with pytest.raises(ConfigError, match="OPENAI_API_KEY, SERPAPI_API_KEY, PERPLEXITY_API_KEY"):
            AppConfig(strict=True).validate()

    def test_lenient_only_warns(self, caplog):
        AppConfig(strict=False, auth=AuthConfig(enabled=False)).validate()
        assert "Missing configuration" in caplog.text

    def test_coach_refuses_to_start_when_strict(self):
        with pytest.raises(ConfigError):
            GeoCoach(config=AppConfig(strict=True)).initialize()

    def test_coach_status(self, app_config):
        coach = GeoCoach(config=app_config)
        status = coach.get_status()
        assert status["initialized"] is True
        assert status["missing_secrets"] == []
        assert status["database"] == "sqlite"

    def test_unknown_visibility_provider(self, app_config):
        with pytest.raises(ValueError):
            GeoCoach(config=app_config).visibility_session("bing")
