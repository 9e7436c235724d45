"""Shared pytest fixtures for the GEO Copy Coach tests."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Ensure project root is on sys.path so 'geocoach' is importable.
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)


SAMPLE_EXTRACTION = {
    "who": {
        "clinic_name": "Bright Smile Dental",
        "people": ["Dr. Jane Smith"],
        "contacts": {"phone": "303-555-0100", "email": None, "address": None},
    },
    "what": {"services": ["dental implants", "cleanings"], "treatments": ["invisalign"]},
    "where": {"cities": ["Denver"], "service_area": ["Aurora", "Lakewood"]},
    "scores": {"who": 72.6, "what": 80, "where": 35.2, "entity": 55},
    "issues": ["No city named in the hero section", "Phone number only in footer"],
    "sentences": [
        {"text": "Bright Smile Dental serves [Nearby City A].", "kind": "where", "priority": 3},
        {"text": "Dr. Jane Smith is a general dentist in Denver.", "kind": "who", "priority": 1},
        {"text": "We offer dental implants for adults.", "kind": "what", "priority": 2},
        {"text": "We are accepting new patients; call [phone].", "kind": "general", "priority": 1},
    ],
    "extracted_entities": [
        {"etype": "person", "value": "Dr. Jane Smith"},
        {"etype": "city", "value": "Denver"},
    ],
    "summary": "General dentistry practice in Denver.",
}

FIVE_QUERIES = [
    "Who is Dr. Smith",
    "What does Dr. Smith do",
    "What area does Dr. Smith serve",
    "What hours is Dr. Smith open",
    "Dr. Smith reviews",
]


@pytest.fixture(autouse=True)
def _reset_db_engine():
    """Autouse fixture: reset the global DB engine before and after every test.

    This prevents cross-test pollution when tests create their own in-memory
    databases.
    """
    from geocoach.database import reset_engine
    reset_engine()
    yield
    reset_engine()


@pytest.fixture()
def test_db():
    """Provide an in-memory SQLite database with all tables created.

    Yields a database URL string. The engine is automatically torn down
    after the test by the autouse ``_reset_db_engine`` fixture.
    """
    from geocoach.database import reset_engine, init_db
    reset_engine()
    db_url = "sqlite:///:memory:"
    init_db(database_url=db_url, echo=False)
    yield db_url


@pytest.fixture()
def five_queries():
    return list(FIVE_QUERIES)


@pytest.fixture()
def sample_extraction():
    """A validated ``AuditExtraction`` built from canned model output."""
    from geocoach.modules.copy_coach.schemas import AuditExtraction
    return AuditExtraction.model_validate(SAMPLE_EXTRACTION)


@pytest.fixture()
def mock_llm_client(sample_extraction):
    """Return a mock LLMClient that returns canned structured output."""
    from geocoach.modules.copy_coach.schemas import AuditExtraction
    from geocoach.modules.visibility.query_generator import GeneratedQueries

    async def _structured(prompt, schema, **kwargs):
        if schema is AuditExtraction:
            return sample_extraction
        if schema is GeneratedQueries:
            return GeneratedQueries(queries=list(FIVE_QUERIES))
        raise AssertionError(f"unexpected schema {schema!r}")

    client = MagicMock()
    client.is_configured = True
    client.generate_structured = AsyncMock(side_effect=_structured)
    client.generate_text = AsyncMock(return_value="Mock LLM response text.")
    client.generate_json = AsyncMock(return_value={"queries": list(FIVE_QUERIES)})
    return client


@pytest.fixture()
def app_config():
    """A complete, strict configuration backed by in-memory SQLite."""
    from geocoach.config import (
        AppConfig, AuthConfig, DatabaseConfig, LLMConfig,
        PerplexityConfig, SerpApiConfig,
    )
    return AppConfig(
        llm=LLMConfig(openai_api_key="sk-test"),
        serpapi=SerpApiConfig(api_key="serp-test"),
        perplexity=PerplexityConfig(api_key="pplx-test"),
        auth=AuthConfig(enabled=True, session_tokens=["test-token"]),
        database=DatabaseConfig(url="sqlite:///:memory:"),
        strict=True,
    )
