"""
LLM API Client

The extraction model is reached through an OpenAI-compatible endpoint, so we
use the openai library. Base URL, model and key come from settings.

COST OPTIMIZATION:
- Fast flash-tier model by default
- Low temperature for consistent structured output
- One call per pasted email, never retried automatically
"""
import json
import logging
import re
from typing import Optional

from openai import OpenAI, OpenAIError

from placement_tracker.core.config import Settings, get_settings
from placement_tracker.core.errors import ExtractionFailure

logger = logging.getLogger(__name__)

JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def extract_json(text: Optional[str]) -> dict:
    """
    Extract the JSON object from a model response.
    Handles responses wrapped in markdown code blocks or surrounded by prose.
    """
    if not text or not text.strip():
        raise ExtractionFailure("Model returned an empty response", raw_response=text)

    match = JSON_OBJECT_RE.search(text)
    if not match:
        raise ExtractionFailure("Could not find JSON in model response", raw_response=text)

    try:
        payload = json.loads(match.group())
    except json.JSONDecodeError as e:
        raise ExtractionFailure(f"Model returned invalid JSON: {e}", raw_response=text) from e

    if not isinstance(payload, dict):
        raise ExtractionFailure("Model response is not a JSON object", raw_response=text)
    return payload


class LLMClient:
    """
    Thin wrapper around the chat completions API.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[OpenAI] = None):
        self.settings = settings or get_settings()
        self.client = client or OpenAI(
            api_key=self.settings.llm_api_key,
            base_url=self.settings.llm_base_url
        )
        self.model = self.settings.llm_model

    def complete(self, system_prompt: str, user_content: str, max_tokens: Optional[int] = None) -> str:
        """
        Call the model and return the raw text response.
        Raises ExtractionFailure on any API error or an empty choice list.
        """
        if not self.settings.llm_api_key:
            raise ExtractionFailure("LLM API key not configured")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content}
                ],
                max_tokens=max_tokens or self.settings.llm_max_tokens,
                temperature=self.settings.llm_temperature
            )
        except OpenAIError as e:
            logger.error("LLM call failed: %s", e)
            raise ExtractionFailure(f"Extraction service unavailable: {e}") from e
        if not response.choices:
            logger.error("LLM returned no choices")
            raise ExtractionFailure("Extraction service returned an empty response")
        return response.choices[0].message.content or ""

    def complete_json(self, system_prompt: str, user_content: str, max_tokens: Optional[int] = None) -> dict:
        return extract_json(self.complete(system_prompt, user_content, max_tokens))

    def check_connection(self) -> bool:
        """Test if the LLM API is reachable"""
        try:
            response = self.complete(
                "You are a test assistant.",
                "Reply with exactly: OK",
                max_tokens=10
            )
            return "OK" in response.upper()
        except ExtractionFailure as e:
            logger.error("LLM connection failed: %s", e.message)
            return False


# Singleton instance
_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create LLM client (singleton pattern)"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
