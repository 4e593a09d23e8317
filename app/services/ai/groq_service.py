"""
Groq LLM client shared by the registration assessment and the onboarding assistant
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from groq import APIError, Groq

from app.core.config import get_settings
from app.core.exceptions import AIServiceError

logger = logging.getLogger(__name__)

PROVIDER = "groq"

# Sampling per use case
USE_CASES: Dict[str, Dict[str, Any]] = {
    "assessment": {"temperature": 0.2, "max_tokens": 1000, "json": True},
    "profile_extraction": {"temperature": 0.1, "max_tokens": 1000, "json": True},
    "assistant_chat": {"temperature": 0.7, "max_tokens": 1200, "json": False},
    "general": {"temperature": 0.4, "max_tokens": 1200, "json": False},
}

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


def strip_code_fences(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
    return content.strip()


def parse_json_response(content: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of an LLM reply

    Tries the reply as-is (minus code fences), then the first {...} block.

    Raises:
        ValueError: when no JSON object can be recovered
    """
    if not content:
        raise ValueError("Empty AI response")

    cleaned = strip_code_fences(content)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _JSON_BLOCK.search(content)
        if not match:
            raise ValueError("AI response did not contain JSON")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse AI response: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("AI response JSON is not an object")
    return data


class GroqLLMService:
    """Chat completions on Groq with per-use-case sampling settings."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, client: Any = None):
        settings = get_settings()
        self.model = model or settings.groq_model
        api_key = api_key if api_key is not None else settings.groq_api_key
        if client is not None:
            self.client = client
        elif api_key:
            self.client = Groq(api_key=api_key)
        else:
            self.client = None

    def chat(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        use_case: str = "general",
    ) -> str:
        """Send a conversation and return the assistant's text."""
        if self.client is None:
            raise AIServiceError("GROQ_API_KEY not set in environment variables")

        config = USE_CASES.get(use_case, USE_CASES["general"])
        payload = ([{"role": "system", "content": system}] if system else []) + list(messages)
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": payload,
            "temperature": config["temperature"],
            "max_tokens": config["max_tokens"],
            "top_p": 0.9,
        }
        if config["json"]:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**kwargs)
        except APIError as e:
            logger.error("Groq %s request failed (%s): %s", use_case, self.model, e)
            raise AIServiceError(str(e), provider=PROVIDER, model=self.model, original_error=e) from e

        content = response.choices[0].message.content or ""
        logger.debug("Groq %s reply: %s chars", use_case, len(content))
        return content

    def complete(self, prompt: str, system: Optional[str] = None, use_case: str = "general") -> str:
        """Single-turn completion."""
        return self.chat([{"role": "user", "content": prompt}], system=system, use_case=use_case)


def get_llm_service() -> GroqLLMService:
    """FastAPI dependency"""
    return GroqLLMService()
