"""Homepage copy audit: fetch, sanitise, extract with the model, persist.

The model scores how clearly a local business homepage answers *who*,
*what* and *where*, lists the issues that keep AI answer engines from
quoting it, and proposes literal sentences to paste into the page.
"""

import logging
from typing import Any, Optional

import httpx

from geocoach.config import AuditConfig
from geocoach.errors import UpstreamError, ValidationError
from geocoach.integrations.llm_client import LLMClient
from geocoach.modules.copy_coach import repository
from geocoach.modules.copy_coach.schemas import AuditExtraction
from geocoach.utils.text_processing import sanitize_html
from geocoach.utils.validators import validate_url

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a GEO/AEO homepage copy coach. You analyze HTML for local business clarity. You output strict JSON only. You avoid fabrication. You prefer "unknown" and bracket placeholders for missing data.

Score who/what/where and overall entity coverage 0-100. List issues that block AI answers. Generate 7-10 literal, quotable sentences users can paste into a homepage. Each sentence must be unambiguous, present tense, and aligned to dental practice context when applicable.

Keep sentences present tense and specific. If key data is missing, include a placeholder in square brackets. Do not include markdown. Examples:
"We are accepting new patients; call [phone]."
"We offer dental implants for adults."
"Our office is in [City], serving [Nearby City A] and [Nearby City B]."
"""


class CopyCoachAuditor:
    """Runs the audit pipeline for one URL and returns the stored audit.

    Usage::

        auditor = CopyCoachAuditor(llm_client, config.audit)
        audit = await auditor.run_audit("https://example-dental.com")
    """

    def __init__(
        self,
        llm_client: LLMClient,
        config: Optional[AuditConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        config = config or AuditConfig()
        self.llm_client = llm_client
        self._headers = {"User-Agent": config.user_agent, "Accept": config.accept}
        self._timeout = config.fetch_timeout
        self._max_html_chars = config.max_html_chars
        self._transport = transport

    async def fetch_page(self, url: str) -> str:
        """Download *url* and return its HTML.

        Raises:
            UpstreamError: (400) non-2xx response or the page is unreachable.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                headers=self._headers,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("Fetching %s failed: %s", url, exc)
            raise UpstreamError("Failed to fetch URL", http_status=400) from exc

        if not response.is_success:
            logger.warning("Fetching %s returned %s", url, response.status_code)
            raise UpstreamError(
                "Failed to fetch URL",
                status_code=response.status_code,
                reason=response.reason_phrase,
                http_status=400,
            )
        return response.text

    async def extract(self, html: str) -> AuditExtraction:
        """Ask the model for the structured audit of sanitised *html*."""
        cleaned = sanitize_html(html, self._max_html_chars)
        logger.debug("Sanitised HTML: %d -> %d chars", len(html), len(cleaned))
        return await self.llm_client.generate_structured(
            f"{SYSTEM_PROMPT}\nHTML:\n{cleaned}",
            AuditExtraction,
            temperature=0.2,
        )

    async def run_audit(self, target: str) -> dict[str, Any]:
        """Audit *target* and return the persisted audit with its relations.

        Raises:
            ValidationError: (400) *target* is missing or not an http(s) URL.
            UpstreamError: (400) the page could not be fetched; (500) any
                later step failed.  The underlying cause is logged, not
                returned.
        """
        target = (target or "").strip()
        if not target:
            raise ValidationError("URL is required")
        valid, message = validate_url(target)
        if not valid:
            raise ValidationError(message)

        html = await self.fetch_page(target)

        try:
            extraction = await self.extract(html)
            audit_id = repository.save_extraction(target, extraction)
            audit = repository.get_audit(audit_id)
            if audit is None:
                raise LookupError(f"Audit {audit_id} vanished after insert")
        except Exception as exc:
            logger.error("Audit of %s failed: %s", target, exc, exc_info=True)
            raise UpstreamError("Failed to process audit") from exc

        logger.info(
            "Audit %s for %s: who=%s what=%s where=%s entity=%s",
            audit["id"], target, audit["score_who"], audit["score_what"],
            audit["score_where"], audit["entity_score"],
        )
        return audit
