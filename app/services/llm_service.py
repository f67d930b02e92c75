"""
app/services/llm_service.py

Purpose: Content provider clients

- OpenAI Chat Completions (primary, single key, JSON response format)
- Google Gemini generateContent (secondary, every configured key in order)
- Maps HTTP failures onto the provider error classes
- Builds cascade tiers for any JSON prompt
"""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import (
    InvalidKeyError,
    PermissionDeniedError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from app.core.logging import get_logger
from app.services.cascade import Strategy

logger = get_logger(__name__)

OPENAI = "openai"
GEMINI = "gemini"

_INVALID_KEY_MARKERS = ("API_KEY_INVALID", "API key not valid", "invalid_api_key", "Incorrect API key")


def map_http_error(provider: str, response: httpx.Response) -> ProviderError:
    """
    Converts a non-2xx provider response into the matching error class.
    """
    status = response.status_code
    body = response.text[:500]

    if status == 401 or (status == 400 and any(marker in body for marker in _INVALID_KEY_MARKERS)):
        return InvalidKeyError(f"{provider} rejected the API key", provider=provider, status=status)
    if status in (403, 429):
        return PermissionDeniedError(
            f"{provider} denied the request ({status}): {body}", provider=provider, status=status
        )
    return ProviderError(f"{provider} API error: {status} {body}", provider=provider, status=status)


def parse_json_text(provider: str, text: Optional[str]) -> Dict[str, Any]:
    """
    Parses a JSON object from model output, tolerating markdown code fences.
    """
    if not isinstance(text, str) or not text.strip():
        raise ProviderResponseError(f"{provider} returned an empty response", provider=provider)

    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]

    try:
        payload = json.loads(cleaned)
    except ValueError as e:
        raise ProviderResponseError(f"{provider} returned invalid JSON", provider=provider) from e

    if not isinstance(payload, dict):
        raise ProviderResponseError(f"{provider} returned a non-object JSON value", provider=provider)
    return payload


class _HTTPProvider:
    name = "provider"

    def __init__(self, api_key: str, model: str, base_url: str, timeout: float, transport=None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"{self.name} request timed out", provider=self.name) from e
        except httpx.RequestError as e:
            raise ProviderError(f"{self.name} network error: {e}", provider=self.name) from e

        if response.status_code >= 400:
            raise map_http_error(self.name, response)

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderResponseError(f"{self.name} returned a non-JSON body", provider=self.name) from e

        if not isinstance(body, dict):
            raise ProviderResponseError(f"{self.name} returned a non-object body", provider=self.name)
        return body


class OpenAIClient(_HTTPProvider):
    """
    Chat Completions with ``response_format: json_object``.
    """
    name = OPENAI

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        schema: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        payload = {
            "model": self.model,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        data = await self._post(
            f"{self.base_url}/chat/completions",
            payload,
            {"Authorization": f"Bearer {self.api_key}"},
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderResponseError("openai response has no message content", provider=self.name) from e

        return parse_json_text(self.name, content)


class GeminiClient(_HTTPProvider):
    """
    generateContent with a JSON response schema.
    """
    name = GEMINI

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        schema: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "responseMimeType": "application/json",
        }
        if schema:
            generation_config["responseSchema"] = schema

        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": generation_config,
        }
        data = await self._post(
            f"{self.base_url}/models/{self.model}:generateContent",
            payload,
            {"x-goog-api-key": self.api_key},
        )

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise ProviderResponseError("gemini candidates is not a list", provider=self.name)

        text = None
        for candidate in candidates:
            content = candidate.get("content") if isinstance(candidate, dict) else None
            parts = content.get("parts") if isinstance(content, dict) else None
            if not isinstance(parts, list):
                continue
            for part in parts:
                if not isinstance(part, dict):
                    continue
                value = part.get("text")
                if isinstance(value, str) and value.strip():
                    text = value
                    break
            if text:
                break

        return parse_json_text(self.name, text)


class LLMService:
    """
    Holds the configured provider clients and turns a prompt into cascade tiers:
    OpenAI first, then every Gemini key in order.
    """

    def __init__(
        self,
        openai_key: Optional[str] = None,
        gemini_keys: Optional[List[str]] = None,
        timeout: Optional[float] = None,
        transport=None
    ):
        timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS

        self.openai: Optional[OpenAIClient] = None
        if openai_key:
            self.openai = OpenAIClient(
                openai_key, settings.OPENAI_MODEL, settings.OPENAI_BASE_URL, timeout, transport
            )

        self.gemini: List[GeminiClient] = [
            GeminiClient(key, settings.GEMINI_MODEL, settings.GEMINI_BASE_URL, timeout, transport)
            for key in (gemini_keys or [])
        ]

    @property
    def configured(self) -> bool:
        return self.openai is not None or bool(self.gemini)

    def build_tiers(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        parse: Callable[[str, Dict[str, Any]], Any],
        schema: Optional[Dict[str, Any]] = None
    ) -> List[List[Strategy]]:
        """
        Args:
            parse: ``(provider, payload) -> value``; raises ProviderResponseError
                   when the payload has the wrong shape

        Returns:
            Tiers for ``run_cascade``
        """
        def make_call(client):
            async def call():
                payload = await client.generate_json(system_prompt, user_prompt, temperature, schema)
                return parse(client.name, payload)
            return call

        tiers: List[List[Strategy]] = []
        if self.openai is not None:
            tiers.append([Strategy(provider=OPENAI, key_index=0, call=make_call(self.openai))])
        if self.gemini:
            tiers.append([
                Strategy(provider=GEMINI, key_index=index, call=make_call(client))
                for index, client in enumerate(self.gemini)
            ])
        return tiers


# Global service instance
_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get or create the global LLM service from settings."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService(
            openai_key=settings.OPENAI_API_KEY,
            gemini_keys=settings.gemini_keys,
        )
        logger.info(
            f"LLM providers configured: openai={'yes' if _llm_service.openai else 'no'}, "
            f"gemini_keys={len(_llm_service.gemini)}"
        )
    return _llm_service
