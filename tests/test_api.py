"""Route tests for the FastAPI application."""

import asyncio
import inspect
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from geocoach.api import server
from geocoach.api.server import create_app
from geocoach.app import GeoCoach
from geocoach.errors import ConfigError
from geocoach.integrations.llm_client import LLMClient
from geocoach.integrations.perplexity_client import PerplexityClient
from geocoach.integrations.serpapi_client import SerpApiClient
from geocoach.modules.copy_coach.auditor import CopyCoachAuditor

AUTH = {"Authorization": "Bearer test-token"}


@pytest.fixture()
def coach(app_config, mock_llm_client):
    coach = GeoCoach(config=app_config)
    coach._llm_client = mock_llm_client
    return coach


@pytest.fixture()
def client(coach):
    return TestClient(create_app(coach))


def _audit_with_page(coach, mock_llm_client, handler):
    coach._auditor = CopyCoachAuditor(
        mock_llm_client, coach.config.audit, transport=httpx.MockTransport(handler)
    )


# ===========================================================================
# Auth and plumbing
# ===========================================================================
class TestAuth:

    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_no_session_redirects_to_login(self, client):
        response = client.get("/audits", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/login"

    def test_unknown_token_redirects(self, client):
        response = client.get(
            "/audits", headers={"Authorization": "Bearer wrong"}, follow_redirects=False
        )
        assert response.status_code == 303

    def test_bearer_token_accepted(self, client):
        assert client.get("/audits", headers=AUTH).status_code == 200

    def test_session_cookie_accepted(self, client):
        response = client.get("/audits", headers={"Cookie": "geocoach_session=test-token"})
        assert response.status_code == 200

    def test_auth_can_be_disabled(self, coach):
        coach.config.auth.enabled = False
        assert TestClient(create_app(coach)).get("/audits").status_code == 200

    def test_strict_config_refuses_to_start(self, coach):
        coach.config.perplexity.api_key = ""
        with pytest.raises(ConfigError, match="PERPLEXITY_API_KEY"):
            create_app(coach)


# ===========================================================================
# Copy coach routes
# ===========================================================================
class TestAuditRoutes:

    def test_missing_target(self, client):
        response = client.post("/audit", json={}, headers=AUTH)
        assert response.status_code == 400
        assert response.json() == {"error": "URL is required"}

    def test_malformed_body(self, client):
        response = client.post(
            "/audit", content="{not json", headers={**AUTH, "Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert "error" in response.json()

    def test_audit_get_list_and_export(self, client, coach, mock_llm_client):
        _audit_with_page(coach, mock_llm_client, lambda r: httpx.Response(200, text="<h1>Dentist</h1>"))

        created = client.post("/audit", json={"target": "https://example-dental.com"}, headers=AUTH)
        assert created.status_code == 200
        audit = created.json()
        assert [r["priority"] for r in audit["recommendations"]] == [1, 1, 2, 3]

        fetched = client.get(f"/audit/{audit['id']}", headers=AUTH)
        assert fetched.json() == audit

        listing = client.get("/audits", headers=AUTH).json()
        assert [row["id"] for row in listing] == [audit["id"]]
        assert "recommendations" not in listing[0]

        export = client.get(f"/export/{audit['id']}", headers=AUTH)
        assert export.status_code == 200
        assert export.headers["content-type"].startswith("text/markdown")
        assert export.headers["content-disposition"] == f'attachment; filename="audit-{audit["id"]}.md"'
        assert export.text.startswith("# GEO/AEO Copy Coach\nURL: https://example-dental.com\n")
        assert client.get(f"/export/{audit['id']}", headers=AUTH).content == export.content

    def test_unreachable_page(self, client, coach, mock_llm_client):
        _audit_with_page(coach, mock_llm_client, lambda r: httpx.Response(404))

        response = client.post("/audit", json={"target": "https://gone.example"}, headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"error": "Failed to fetch URL"}
        assert client.get("/audits", headers=AUTH).json() == []

    def test_storage_routes_run_in_threadpool(self):
        for endpoint in (server.get_audit, server.list_audits, server.export_audit):
            assert not inspect.iscoroutinefunction(endpoint)

    def test_unknown_audit(self, client):
        for path in ("/audit/nope", "/export/nope"):
            response = client.get(path, headers=AUTH)
            assert response.status_code == 404
            assert response.json() == {"error": "Audit not found"}


# ===========================================================================
# Visibility routes
# ===========================================================================
class TestVisibilityRoutes:

    def test_generate_queries(self, client, five_queries):
        response = client.post("/generate-queries", json={"searchTerm": "Dr. Smith"}, headers=AUTH)
        assert response.status_code == 200
        assert response.json() == {"queries": five_queries}

    def test_generate_queries_requires_term(self, client):
        response = client.post("/generate-queries", json={"searchTerm": ""}, headers=AUTH)
        assert response.status_code == 400
        assert response.json() == {"error": "Search term is required"}

    def test_generate_queries_llm_failure_returns_message(self, app_config):
        coach = GeoCoach(config=app_config)
        llm = LLMClient(app_config.llm)
        coach._llm_client = llm

        with patch.object(llm, "_call_openai", AsyncMock(side_effect=RuntimeError("Connection error."))):
            response = TestClient(create_app(coach)).post(
                "/generate-queries", json={"searchTerm": "Dr. Smith"}, headers=AUTH
            )

        assert response.status_code == 500
        assert response.json() == {"error": "LLM request failed: Connection error."}

    def test_serp_requires_query(self, client):
        response = client.post("/serp-search", json={}, headers=AUTH)
        assert response.status_code == 400
        assert response.json() == {"error": "Query is required"}

    def test_serp_missing_key_is_server_error(self, app_config, mock_llm_client):
        app_config.strict = False
        app_config.serpapi.api_key = ""
        coach = GeoCoach(config=app_config)
        coach._llm_client = mock_llm_client

        response = TestClient(create_app(coach)).post("/serp-search", json={"query": "q"}, headers=AUTH)

        assert response.status_code == 500
        assert response.json() == {"error": "SerpAPI key not configured"}

    def test_serp_page_token_timeout_gives_null_overview(self, client, coach):
        def handler(request):
            if request.url.params.get("engine") == "google_ai_overview":
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, json={
                "ai_overview": {"page_token": "tok"},
                "search_parameters": {"q": "who is dr smith"},
            })

        coach._serp_client = SerpApiClient(coach.config.serpapi, transport=httpx.MockTransport(handler))

        response = client.post("/serp-search", json={"query": "who is dr smith"}, headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["ai_overview"] is None
        assert body["search_metadata"]["query"] == "who is dr smith"

    def test_perplexity_batch_isolates_failures(self, client, coach):
        def handler(request):
            query = json.loads(request.content)["messages"][1]["content"]
            if query == "b":
                return httpx.Response(502, text="bad gateway")
            return httpx.Response(200, json={"choices": [{"message": {"content": "answer a"}}]})

        coach._perplexity_client = PerplexityClient(
            coach.config.perplexity, transport=httpx.MockTransport(handler)
        )

        response = client.post("/perplexity-search", json={"queries": ["a", "b"]}, headers=AUTH)

        assert response.status_code == 200
        results = response.json()["results"]
        assert len(results) == 2
        assert results[0]["answer"] == "answer a"
        assert results[1]["query"] == "b"
        assert results[1]["error"].startswith("Perplexity API request failed: 502")

    def test_perplexity_single_query(self, client, coach):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}]})

        coach._perplexity_client = PerplexityClient(
            coach.config.perplexity, transport=httpx.MockTransport(handler)
        )
        body = client.post("/perplexity-search", json={"query": "a"}, headers=AUTH).json()
        assert body["answer"] == "hi"
        assert "results" not in body

    def test_perplexity_requires_query(self, client):
        response = client.post("/perplexity-search", json={"queries": []}, headers=AUTH)
        assert response.status_code == 400
        assert response.json() == {"error": "Query or queries are required"}

    def test_request_budget(self, coach, client):
        async def slow(subject):
            await asyncio.sleep(1)

        coach.config.request_timeout = 0.05
        coach._query_generator = MagicMock(generate=AsyncMock(side_effect=slow))

        response = client.post("/generate-queries", json={"searchTerm": "Dr. Smith"}, headers=AUTH)

        assert response.status_code == 504
        assert response.json() == {"error": "Request timed out"}


# ===========================================================================
# Chat
# ===========================================================================
class TestChat:

    def test_streams_reply(self, client, mock_llm_client):
        async def fake_stream(messages, system_prompt=""):
            assert messages == [{"role": "user", "content": "hello"}]
            yield "Hel"
            yield "lo!"

        mock_llm_client.stream_chat = fake_stream

        response = client.post(
            "/chat", json={"messages": [{"role": "user", "content": "hello"}]}, headers=AUTH
        )
        assert response.status_code == 200
        assert response.text == "Hello!"

    def test_config_error_is_json(self, client, mock_llm_client):
        async def no_provider(messages, system_prompt=""):
            raise ConfigError("Chat requires OPENAI_API_KEY.")
            yield  # pragma: no cover

        mock_llm_client.stream_chat = no_provider

        response = client.post(
            "/chat", json={"messages": [{"role": "user", "content": "hello"}]}, headers=AUTH
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Chat requires OPENAI_API_KEY."}

    def test_requires_messages(self, client):
        response = client.post("/chat", json={"messages": []}, headers=AUTH)
        assert response.status_code == 400
