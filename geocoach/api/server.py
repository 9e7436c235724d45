"""FastAPI application: audit, export, query generation, and search routes."""

import asyncio
import logging
from typing import Any, Awaitable, Optional, TypeVar

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse, Response, StreamingResponse
from pydantic import BaseModel, Field

from geocoach import __version__
from geocoach.api.auth import AuthRedirect, CurrentUser, require_user
from geocoach.app import GeoCoach
from geocoach.errors import GeoCoachError, UpstreamError, ValidationError
from geocoach.modules.copy_coach import repository
from geocoach.modules.copy_coach.exporter import export_filename, render_markdown

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHAT_SYSTEM_PROMPT = "You are a helpful assistant for local business SEO and AI search visibility."


# =============================================================================
# Request models
# =============================================================================

class AuditRequest(BaseModel):
    target: Optional[str] = None


class GenerateQueriesRequest(BaseModel):
    searchTerm: Optional[str] = None


class SearchRequest(BaseModel):
    query: Optional[str] = None
    queries: Optional[list[str]] = None


class ChatMessage(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)


# =============================================================================
# Helpers
# =============================================================================

def get_coach(request: Request) -> GeoCoach:
    return request.app.state.coach


async def within_budget(coach: GeoCoach, awaitable: Awaitable[T]) -> T:
    """Await *awaitable*, giving up after the configured request budget."""
    try:
        return await asyncio.wait_for(awaitable, timeout=coach.config.request_timeout)
    except asyncio.TimeoutError as exc:
        logger.error("Request exceeded %.0fs budget", coach.config.request_timeout)
        raise UpstreamError("Request timed out", http_status=504) from exc


def _not_found() -> JSONResponse:
    return JSONResponse({"error": "Audit not found"}, status_code=404)


router = APIRouter(dependencies=[Depends(require_user)])


# =============================================================================
# Copy coach
# =============================================================================

@router.post("/audit")
async def create_audit(body: AuditRequest, coach: GeoCoach = Depends(get_coach)) -> dict[str, Any]:
    """Fetch, score, and store a homepage audit."""
    if not body.target:
        raise ValidationError("URL is required")
    return await within_budget(coach, coach.get_auditor().run_audit(body.target))


@router.get("/audit/{audit_id}")
def get_audit(audit_id: str):
    audit = repository.get_audit(audit_id)
    if audit is None:
        return _not_found()
    return audit


@router.get("/audits")
def list_audits() -> list[dict[str, Any]]:
    """Latest 50 audits, summary fields only, newest first."""
    return repository.list_audits()


@router.get("/export/{audit_id}")
def export_audit(audit_id: str):
    audit = repository.get_audit(audit_id)
    if audit is None:
        return _not_found()
    return Response(
        content=render_markdown(audit),
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(audit_id)}"'},
    )


# =============================================================================
# Visibility tools
# =============================================================================

@router.post("/generate-queries")
async def generate_queries(
    body: GenerateQueriesRequest, coach: GeoCoach = Depends(get_coach)
) -> dict[str, list[str]]:
    if not body.searchTerm:
        raise ValidationError("Search term is required")
    queries = await within_budget(coach, coach.get_query_generator().generate(body.searchTerm))
    return {"queries": queries}


@router.post("/serp-search")
async def serp_search(body: SearchRequest, coach: GeoCoach = Depends(get_coach)) -> dict[str, Any]:
    if not body.query:
        raise ValidationError("Query is required")
    return await within_budget(coach, coach.get_serp_client().search_one(body.query))


@router.post("/perplexity-search")
async def perplexity_search(body: SearchRequest, coach: GeoCoach = Depends(get_coach)) -> dict[str, Any]:
    """Single ``query`` returns one payload; ``queries`` returns ``{results: [...]}``."""
    if not body.query and not body.queries:
        raise ValidationError("Query or queries are required")
    client = coach.get_perplexity_client()
    if body.queries:
        results = await within_budget(coach, client.search_many(body.queries))
        return {"results": results}
    return await within_budget(coach, client.search_one(body.query))


# =============================================================================
# Chat
# =============================================================================

@router.post("/chat")
async def chat(
    body: ChatRequest,
    coach: GeoCoach = Depends(get_coach),
    user: CurrentUser = Depends(require_user),
):
    """Stream a freeform assistant reply as plain text."""
    if not body.messages:
        raise ValidationError("Messages are required")
    stream = coach.get_llm_client().stream_chat(
        [m.model_dump() for m in body.messages],
        system_prompt=f"{CHAT_SYSTEM_PROMPT} You are talking to {user.id}.",
    )
    # Pull the first chunk here so configuration and upstream errors still
    # become JSON error responses instead of a broken stream.
    try:
        first = await stream.__anext__()
    except StopAsyncIteration:
        first = ""

    async def _body():
        if first:
            yield first
        async for chunk in stream:
            yield chunk

    return StreamingResponse(_body(), media_type="text/plain; charset=utf-8")


# =============================================================================
# Application factory
# =============================================================================

def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthRedirect)
    async def _auth_redirect(request: Request, exc: AuthRedirect):
        return RedirectResponse(exc.location, status_code=303)

    @app.exception_handler(GeoCoachError)
    async def _geocoach_error(request: Request, exc: GeoCoachError):
        return JSONResponse({"error": str(exc)}, status_code=exc.http_status)

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        logger.info("Rejected malformed body on %s: %s", request.url.path, exc.errors())
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(coach: Optional[GeoCoach] = None) -> FastAPI:
    """Build the API around *coach*, validating its configuration now.

    Raises:
        ConfigError: Missing secrets with a strict configuration.
    """
    coach = coach or GeoCoach()
    coach.initialize()

    app = FastAPI(
        title="GEO Copy Coach",
        description="Local-SEO homepage audits and AI search visibility checks",
        version=__version__,
    )
    app.state.coach = coach
    _register_error_handlers(app)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "geocoach"}

    app.include_router(router)
    return app
