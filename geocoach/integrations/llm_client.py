"""Unified LLM client supporting OpenAI and Google Gemini with automatic fallback."""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, TypeVar

import openai
import google.generativeai as genai
from pydantic import BaseModel, ValidationError as PydanticValidationError

from geocoach.config import LLMConfig
from geocoach.errors import BudgetExceededError, ConfigError, GeoCoachError, SchemaError, UpstreamError

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

JSON_SYSTEM_PROMPT = "You are a helpful assistant. Respond ONLY with valid JSON."


@dataclass
class UsageStats:
    """Tracks token usage and estimated cost."""
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_requests: int = 0
    total_cost_usd: float = 0.0
    monthly_cost_usd: float = 0.0
    month_start: float = field(default_factory=time.time)

    def add_usage(self, input_tokens: int, output_tokens: int,
                  cost_per_1k_input: float = 0.0025,
                  cost_per_1k_output: float = 0.01) -> float:
        """Record token usage and return cost for this call."""
        cost = (input_tokens / 1000) * cost_per_1k_input + \
               (output_tokens / 1000) * cost_per_1k_output
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.total_requests += 1
        self.total_cost_usd += cost
        self.monthly_cost_usd += cost
        return cost

    def reset_monthly(self) -> None:
        """Reset monthly counters."""
        self.monthly_cost_usd = 0.0
        self.month_start = time.time()


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```), if any."""
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = lines[1:]  # remove opening ```json
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines)
    return cleaned


class LLMClient:
    """Unified async LLM client with OpenAI primary and Gemini fallback.

    Usage::

        client = LLMClient(config.llm)
        text = await client.generate_text("Explain local SEO basics")
        data = await client.generate_json("Return 5 queries as JSON")
        audit = await client.generate_structured(prompt, AuditExtraction)
    """

    def __init__(self, config: Optional[LLMConfig] = None):
        config = config or LLMConfig()
        self._openai_key = config.openai_api_key
        self._gemini_key = config.gemini_api_key

        self._openai_model = config.model
        self._gemini_model = config.fallback_model
        self._max_tokens = config.max_tokens
        self._temperature = config.temperature
        self._timeout = config.timeout

        self._openai_client: Optional[openai.AsyncOpenAI] = None
        if self._openai_key:
            self._openai_client = openai.AsyncOpenAI(
                api_key=self._openai_key, timeout=config.timeout
            )

        if self._gemini_key:
            genai.configure(api_key=self._gemini_key)

        # Usage tracking
        self.usage = UsageStats()
        self._max_monthly_budget = config.max_monthly_budget
        self._budget_warning_pct = config.budget_warning_pct

    @property
    def is_configured(self) -> bool:
        return bool(self._openai_client or self._gemini_key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str = "You are a helpful local SEO assistant.",
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> str:
        """Generate text from the LLM.  Falls back to Gemini on OpenAI failure.

        Raises:
            UpstreamError: Every configured provider failed.
            BudgetExceededError: The monthly budget is spent and there is no fallback.
        """
        max_tokens = max_tokens or self._max_tokens
        temperature = temperature if temperature is not None else self._temperature

        if self._openai_client:
            try:
                return await self._call_openai(
                    prompt, system_prompt, max_tokens, temperature, json_mode
                )
            except Exception as exc:
                if not self._gemini_key:
                    if isinstance(exc, GeoCoachError):
                        raise
                    raise UpstreamError(f"LLM request failed: {exc}") from exc
                logger.warning("OpenAI call failed: %s; falling back to Gemini", exc)

        if self._gemini_key:
            try:
                return await self._call_gemini(
                    prompt, system_prompt, max_tokens, temperature, json_mode
                )
            except Exception as exc:
                logger.error("Gemini call also failed: %s", exc)
                raise UpstreamError(f"LLM request failed: {exc}") from exc

        raise ConfigError("No LLM provider configured. Set OPENAI_API_KEY or GEMINI_API_KEY.")

    async def generate_json(
        self,
        prompt: str,
        system_prompt: str = JSON_SYSTEM_PROMPT,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Any:
        """Generate a JSON response and parse it.

        Raises:
            SchemaError: The model did not return parseable JSON.
        """
        raw = await self.generate_text(
            prompt=prompt,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
            temperature=temperature if temperature is not None else 0.3,
            json_mode=True,
        )
        try:
            return json.loads(strip_code_fences(raw))
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse JSON from LLM response: %s", exc)
            logger.debug("Raw response: %s", raw[:500])
            raise SchemaError(f"LLM returned invalid JSON: {exc}") from exc

    async def generate_structured(
        self,
        prompt: str,
        schema: type[SchemaT],
        system_prompt: str = JSON_SYSTEM_PROMPT,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> SchemaT:
        """Generate JSON and validate it against a pydantic *schema*.

        The JSON Schema of *schema* is appended to the prompt.  Output that
        does not validate is rejected, never coerced by truncation or
        padding, and never retried.

        Raises:
            SchemaError: Invalid JSON or a schema violation.
        """
        schema_json = json.dumps(schema.model_json_schema(), indent=2)
        full_prompt = (
            f"{prompt}\n\nRespond with a single JSON object matching this JSON Schema:\n"
            f"{schema_json}"
        )
        data = await self.generate_json(
            full_prompt,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        try:
            return schema.model_validate(data)
        except PydanticValidationError as exc:
            logger.error(
                "LLM output failed %s validation (%d errors)",
                schema.__name__, exc.error_count(),
            )
            raise SchemaError(f"LLM output does not match {schema.__name__}: {exc}") from exc

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        system_prompt: str = "You are a helpful assistant.",
    ) -> AsyncIterator[str]:
        """Stream a chat completion as text deltas (OpenAI only).

        Raises:
            UpstreamError: The OpenAI request or stream failed.
        """
        if not self._openai_client:
            raise ConfigError("Chat requires OPENAI_API_KEY.")
        self._check_budget()

        try:
            stream = await self._openai_client.chat.completions.create(
                model=self._openai_model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.OpenAIError as exc:
            logger.error("OpenAI chat stream failed: %s", exc)
            raise UpstreamError(f"LLM request failed: {exc}") from exc
        self.usage.total_requests += 1

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _call_openai(
        self, prompt: str, system_prompt: str,
        max_tokens: int, temperature: float, json_mode: bool = False,
    ) -> str:
        """Call OpenAI Chat Completions API."""
        self._check_budget()

        kwargs: dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = await self._openai_client.chat.completions.create(
            model=self._openai_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
            **kwargs,
        )
        choice = response.choices[0].message.content or ""
        usage = response.usage
        if usage:
            cost = self.usage.add_usage(usage.prompt_tokens, usage.completion_tokens)
            logger.info(
                "OpenAI call: %d in / %d out tokens, $%.6f",
                usage.prompt_tokens, usage.completion_tokens, cost,
            )
        return choice.strip()

    async def _call_gemini(
        self, prompt: str, system_prompt: str,
        max_tokens: int, temperature: float, json_mode: bool = False,
    ) -> str:
        """Call Google Gemini API."""
        generation_config = genai.types.GenerationConfig(
            max_output_tokens=max_tokens,
            temperature=temperature,
            response_mime_type="application/json" if json_mode else "text/plain",
        )
        model = genai.GenerativeModel(
            model_name=self._gemini_model,
            system_instruction=system_prompt,
            generation_config=generation_config,
        )
        # Run synchronous Gemini call in a thread to keep async interface
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(
            None, model.generate_content, prompt
        )
        text = response.text or ""
        logger.info("Gemini call completed (len=%d)", len(text))
        return text.strip()

    def _check_budget(self) -> None:
        """Raise if monthly budget is exceeded; warn if approaching."""
        if self.usage.monthly_cost_usd >= self._max_monthly_budget:
            raise BudgetExceededError(
                f"Monthly LLM budget exceeded: ${self.usage.monthly_cost_usd:.2f} "
                f">= ${self._max_monthly_budget:.2f}"
            )
        warning_threshold = self._max_monthly_budget * (self._budget_warning_pct / 100)
        if self.usage.monthly_cost_usd >= warning_threshold:
            logger.warning(
                "LLM budget warning: $%.2f / $%.2f (%.0f%%)",
                self.usage.monthly_cost_usd,
                self._max_monthly_budget,
                (self.usage.monthly_cost_usd / self._max_monthly_budget) * 100,
            )

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    def get_usage_summary(self) -> dict[str, Any]:
        """Return a summary of token usage and costs."""
        return {
            "total_requests": self.usage.total_requests,
            "total_input_tokens": self.usage.total_input_tokens,
            "total_output_tokens": self.usage.total_output_tokens,
            "total_cost_usd": round(self.usage.total_cost_usd, 6),
            "monthly_cost_usd": round(self.usage.monthly_cost_usd, 6),
            "max_monthly_budget": self._max_monthly_budget,
            "budget_remaining": round(
                self._max_monthly_budget - self.usage.monthly_cost_usd, 6
            ),
        }
