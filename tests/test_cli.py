"""CLI smoke tests."""

import httpx
import pytest
from typer.testing import CliRunner

from geocoach import cli
from geocoach.app import GeoCoach
from geocoach.cli import app
from geocoach.integrations.serpapi_client import SerpApiClient
from geocoach.modules.copy_coach import repository

runner = CliRunner()


@pytest.fixture()
def secrets(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("SERPAPI_API_KEY", "serp-test")
    monkeypatch.setenv("PERPLEXITY_API_KEY", "pplx-test")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    return monkeypatch


class TestCli:

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("serve", "audit", "audits", "export", "serp", "perplexity", "init-db"):
            assert command in result.output

    def test_missing_secrets_exit_with_error(self, monkeypatch):
        for name in ("OPENAI_API_KEY", "GEMINI_API_KEY", "SERPAPI_API_KEY", "PERPLEXITY_API_KEY"):
            monkeypatch.setenv(name, "")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
        result = runner.invoke(app, ["audits"])
        assert result.exit_code == 1
        assert "Missing required configuration" in result.output

    def test_export_writes_markdown(self, test_db, secrets, tmp_path):
        audit_id = repository.save_audit(
            url="https://example-dental.com",
            scores={"who": 50, "what": 60, "where": 70, "entity": 80},
            issues=["Missing hours"],
            recommendations=[{"kind": "who", "priority": 1, "sentence": "We are Bright Smile Dental."}],
        )
        target = tmp_path / "out" / "audit.md"

        result = runner.invoke(app, ["export", audit_id, "-o", str(target)])

        assert result.exit_code == 0
        text = target.read_text(encoding="utf-8")
        assert "- [who • P1] We are Bright Smile Dental." in text
        assert text.endswith("- Missing hours")

    def test_show_unknown_audit(self, test_db, secrets):
        result = runner.invoke(app, ["show", "nope"])
        assert result.exit_code == 1
        assert "Audit not found" in result.output


class TestSerpOutput:

    @pytest.fixture()
    def serp_coach(self, app_config, mock_llm_client, monkeypatch):
        def handler(request):
            query = request.url.params["q"]
            payload = {
                "search_parameters": {"q": query},
                "search_information": {"total_results": 42, "time_taken_displayed": 0.31},
                "answer_box": {
                    "type": "hours",
                    "description": "Bright Smile Dental hours",
                    "result": "Open now",
                    "hours_list": [{"title": "Regular hours", "items": [{"day": "Monday", "hours": "9am-5pm"}]}],
                },
            }
            if query == "Who is Dr. Smith":
                payload["ai_overview"] = {
                    "text_blocks": [
                        {"type": "heading", "snippet": "Why patients choose us"},
                        {"type": "list", "list": [{"title": "Implants", "snippet": "Same-day consults"}]},
                    ],
                    "references": [{"title": "Smile Blog", "link": "https://smile.example", "snippet": "Trusted [since] 1999"}],
                }
            return httpx.Response(200, json=payload)

        coach = GeoCoach(config=app_config)
        coach._llm_client = mock_llm_client
        coach._serp_client = SerpApiClient(app_config.serpapi, transport=httpx.MockTransport(handler))
        monkeypatch.setattr(cli, "_get_coach", lambda verbose=False, config_path="": coach)
        return coach

    def test_answer_box_rendered_when_no_overview(self, serp_coach):
        result = runner.invoke(app, ["serp", "Dr. Smith"])

        assert result.exit_code == 0
        assert "No AI Overview" not in result.output
        assert "Answer Box" in result.output
        assert "Business Hours" in result.output
        assert "Monday: 9am-5pm" in result.output
        assert "Open now" in result.output

    def test_overview_blocks_and_references(self, serp_coach):
        result = runner.invoke(app, ["serp", "Dr. Smith"])

        assert "Why patients choose us" in result.output
        assert "Implants" in result.output
        assert "Trusted [since] 1999" in result.output
        assert "~42 results" in result.output
