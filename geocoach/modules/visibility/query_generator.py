"""Generate the five search queries people use to look up a local business."""

import logging

from pydantic import BaseModel, Field

from geocoach.errors import ValidationError
from geocoach.integrations.llm_client import LLMClient

logger = logging.getLogger(__name__)

QUERY_COUNT = 5

_PROMPT = """Generate exactly 5 Google search queries that people would use to find information about "{subject}".

The queries should cover different aspects of the practice/business:
1. Who is {subject} - basic identification
2. What does {subject} do - services offered
3. What area does {subject} serve - location/service area
4. What hours is {subject} open - business hours
5. One additional relevant query (reviews, contact info, specialties, etc.)

Make the queries natural and conversational, as people would actually type them into Google. Use the exact search term provided: "{subject}".

Examples of good queries:
- "Who is Dr. Smith"
- "What does Dr. Smith do"
- "What area does Dr. Smith serve"
- "What hours is Dr. Smith open"
- "Dr. Smith reviews" or "Dr. Smith contact information"

Return exactly 5 queries as {{"queries": [...]}}."""


class GeneratedQueries(BaseModel):
    """Model output: exactly five queries, in intent order."""

    queries: list[str] = Field(
        min_length=QUERY_COUNT,
        max_length=QUERY_COUNT,
        description="Array of exactly 5 search queries",
    )


class QueryGenerator:
    """Turns a business or person name into five ordered search queries.

    The positions map to fixed intents (identity, services, service area,
    hours, one free slot) by phrasing only; nothing downstream relies on it.
    """

    def __init__(self, llm_client: LLMClient) -> None:
        self.llm_client = llm_client

    async def generate(self, subject: str) -> list[str]:
        """Return exactly five queries for *subject*.

        Raises:
            ValidationError: *subject* is empty.
            SchemaError: The model did not return exactly five strings.
        """
        subject = (subject or "").strip()
        if not subject:
            raise ValidationError("Search term is required")

        result = await self.llm_client.generate_structured(
            _PROMPT.format(subject=subject),
            GeneratedQueries,
            temperature=0.7,
        )
        logger.info("Generated %d queries for %r", len(result.queries), subject)
        return list(result.queries)
