"""
Event search over the Grok responses API.

Domain pipelines ask a search-enabled model for structured event lists; this
adapter sends the prompt and returns the JSON array found in the answer.
"""
from typing import Any, Dict, List, Optional

import httpx

from flaneur.core.config import Settings
from flaneur.core.logging import get_logger
from flaneur.services.enrichment_parser import extract_json_array

logger = get_logger(__name__)


class EventSearchClient:
    """Contract of a web-search backed event finder."""

    async def search(self, prompt: str, system_prompt: Optional[str] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError


def _response_text(data: Dict[str, Any]) -> str:
    for output in data.get("output") or []:
        if output.get("type") == "message" and output.get("role") == "assistant":
            content = output.get("content")
            if isinstance(content, str):
                return content
            if isinstance(content, list):
                return "".join(part.get("text", "") for part in content if isinstance(part, dict))
    choices = data.get("choices") or []
    if choices:
        content = (choices[0].get("message") or {}).get("content")
        if isinstance(content, str):
            return content
    return ""


class GrokEventSearch(EventSearchClient):
    """Grok with the x_search and web_search tools enabled."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.x.ai/v1",
        timeout: float = 60.0,
        temperature: float = 0.3,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "GrokEventSearch":
        """
        Raises:
            ConfigurationException: when GROK_API_KEY is missing
        """
        settings.require("grok_api_key")
        return cls(
            settings.grok_api_key,
            settings.grok_model,
            base_url=settings.grok_base_url,
            timeout=settings.grok_timeout_seconds,
        )

    async def search(self, prompt: str, system_prompt: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Run one search prompt and return the JSON array of its answer.

        HTTP errors propagate; an answer without a parseable array yields [].
        """
        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})
        payload = {
            "model": self.model,
            "input": messages,
            "tools": [{"type": "x_search"}, {"type": "web_search"}],
            "temperature": self.temperature,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        if self._client is not None:
            response = await self._client.post(f"{self.base_url}/responses", json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/responses", json=payload, headers=headers)
        response.raise_for_status()

        text = _response_text(response.json())
        events = [e for e in extract_json_array(text) if isinstance(e, dict)]
        logger.info("Event search completed", model=self.model, events=len(events))
        return events
