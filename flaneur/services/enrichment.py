"""
Enrichment invoker over a text generation service.

This service implements:
- A narrow TextGenerator contract with a Gemini implementation
- An explicit BackoffPolicy that retries quota errors on a fixed schedule
- The EnrichmentInvoker used by both the enrichment engine and the domain pipelines
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple

import google.generativeai as genai
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
    wait_none,
)

from flaneur.core.config import Settings
from flaneur.core.exceptions import QuotaExhaustedError, is_quota_error
from flaneur.core.logging import get_logger
from flaneur.schemas.enrichment import EnrichmentRequest, EnrichmentResult
from flaneur.services.enrichment_parser import (
    BLOCKED_DOMAINS,
    extract_json_object,
    parse_enrichment_response,
)
from flaneur.services.prompts import build_enrichment_prompt

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class TextGenerator:
    """Contract of a text generation backend."""

    async def generate(self, prompt: str, model: str) -> str:
        raise NotImplementedError


class GeminiTextGenerator(TextGenerator):
    """Text generation through google-generativeai."""

    def __init__(self, api_key: str, temperature: float = 0.6):
        genai.configure(api_key=api_key)
        self.temperature = temperature
        self._models: Dict[str, Any] = {}

    def _model(self, model: str):
        if model not in self._models:
            self._models[model] = genai.GenerativeModel(
                model,
                generation_config=genai.GenerationConfig(temperature=self.temperature),
            )
        return self._models[model]

    async def generate(self, prompt: str, model: str) -> str:
        response = await self._model(model).generate_content_async(prompt)
        return response.text or ""


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Retry schedule for quota errors.

    Only quota errors are retried, after each delay in turn; anything else
    propagates on the first failure. When the schedule is exhausted the last
    quota error is re-raised as QuotaExhaustedError.
    """
    delays: Tuple[float, ...] = (2.0, 5.0, 15.0)

    @property
    def max_attempts(self) -> int:
        return len(self.delays) + 1

    @property
    def worst_case_delay(self) -> float:
        """Total sleep one call can add before it gives up."""
        return float(sum(self.delays))

    async def call(self, operation: Callable[[], Awaitable[Any]], sleep: Sleep = asyncio.sleep) -> Any:
        wait = wait_chain(*[wait_fixed(d) for d in self.delays]) if self.delays else wait_none()
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_quota_error),
            wait=wait,
            stop=stop_after_attempt(self.max_attempts),
            sleep=sleep,
            reraise=True,
            before_sleep=_log_retry,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await operation()
        except QuotaExhaustedError:
            raise
        except Exception as e:
            if is_quota_error(e):
                raise QuotaExhaustedError(f"Quota exhausted after {self.max_attempts} attempts: {e}") from e
            raise
        return result


def _log_retry(retry_state) -> None:
    logger.warning(
        "Generation quota hit, backing off",
        attempt=retry_state.attempt_number,
        delay=retry_state.next_action.sleep if retry_state.next_action else None,
    )


class EnrichmentInvoker:
    """Call the generation service for enrichment and for domain stories."""

    def __init__(
        self,
        generator: TextGenerator,
        backoff: Optional[BackoffPolicy] = None,
        sleep: Sleep = asyncio.sleep,
        blocked_domains: Optional[Dict[str, Sequence[str]]] = None,
    ):
        self.generator = generator
        self.backoff = backoff or BackoffPolicy()
        self.sleep = sleep
        self.blocked_domains = blocked_domains if blocked_domains is not None else BLOCKED_DOMAINS

    @classmethod
    def from_settings(cls, settings: Settings, sleep: Sleep = asyncio.sleep) -> "EnrichmentInvoker":
        """
        Build a Gemini-backed invoker.

        Raises:
            ConfigurationException: when GEMINI_API_KEY is missing
        """
        settings.require("gemini_api_key")
        return cls(
            GeminiTextGenerator(settings.gemini_api_key, temperature=settings.gemini_temperature),
            backoff=BackoffPolicy(tuple(settings.quota_retry_delays)),
            sleep=sleep,
        )

    async def generate_text(self, prompt: str, model: str) -> str:
        """Raw generation under the backoff policy."""
        return await self.backoff.call(lambda: self.generator.generate(prompt, model), sleep=self.sleep)

    async def enrich(self, request: EnrichmentRequest) -> EnrichmentResult:
        """
        Enrich one item.

        Errors propagate to the caller, including QuotaExhaustedError once the
        backoff schedule is spent.
        """
        prompt = build_enrichment_prompt(request)
        logger.info(
            "Enriching content",
            locale=request.locale.id,
            model=request.model,
            article_type=request.article_type,
            continuity_items=len(request.continuity),
        )
        raw = await self.generate_text(prompt, request.model)
        return parse_enrichment_response(
            raw,
            request.locale,
            request.model,
            self.blocked_domains.get(request.locale.id, []),
        )

    async def generate_json(self, prompt: str, model: str) -> Dict[str, Any]:
        """
        Generate and return the first JSON object of the response.

        Raises:
            GenerationParseError: the response holds no JSON object
        """
        raw = await self.generate_text(prompt, model)
        return extract_json_object(raw)
