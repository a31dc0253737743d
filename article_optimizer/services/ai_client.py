"""Generative text client for article rewrites (Gemini or an OpenAI-compatible API)."""

import asyncio
import json
import logging
from typing import Optional

from aiohttp import ClientError, ClientTimeout

from ..config import Settings, get_settings
from ..core.exceptions import APIError, ConfigurationError
from ..core.http_client import get_http_client

logger = logging.getLogger(__name__)


class AIClient:
    """Client for text generation using an external AI provider (Gemini or OpenAI-compatible)."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        # Provider selection: "gemini" or "openai"
        self.provider = (self.settings.ai_provider or 'gemini').lower()
        self.model = self.settings.optimizer_model
        self.timeout = ClientTimeout(total=self.settings.ai_request_timeout)

        if self.provider == "gemini":
            self.endpoint = self.settings.gemini_api_endpoint.rstrip('/')
            self.api_key = self.settings.gemini_api_key.get_secret_value() if self.settings.gemini_api_key else None
            if not self.api_key:
                raise ConfigurationError("Gemini API key must be configured (GEMINI_API_KEY)")

        elif self.provider == "openai":
            self.endpoint = self.settings.openai_compatible_api
            key = self.settings.openai_compatible_api_key
            self.api_key = key.get_secret_value() if key else None
            if not self.endpoint or not self.api_key:
                raise ConfigurationError(
                    "OpenAI-compatible API endpoint and key must be configured "
                    "(OPENAI_COMPATIBLE_API, OPENAI_COMPATIBLE_API_KEY)"
                )
        else:
            raise ConfigurationError(f"Unknown AI provider: {self.provider}. Supported: 'gemini', 'openai'")

    async def generate_text(self, prompt: str, max_output_tokens: Optional[int] = None,
                            temperature: Optional[float] = None) -> str:
        """
        Run one completion and return the generated text.

        Raises:
            APIError: transport failure, non-200 answer or an empty completion
        """
        max_output_tokens = max_output_tokens or self.settings.optimizer_max_output_tokens
        if temperature is None:
            temperature = self.settings.optimizer_temperature

        logger.info(f"🤖 {self.provider} request: model={self.model}, prompt={len(prompt)} chars")
        try:
            if self.provider == "gemini":
                text = await self._make_gemini_request(prompt, self.model, temperature, max_output_tokens)
            else:
                text = await self._make_openai_request(prompt, self.model, temperature, max_output_tokens)
        except APIError:
            raise
        except (ClientError, asyncio.TimeoutError) as e:
            raise APIError(f"{self.provider} request failed: {e}") from e

        if not text or not text.strip():
            raise APIError("Empty completion from AI provider", status_code=200, response_text="")
        logger.info(f"📄 Completion received: {len(text)} chars")
        return text.strip()

    async def _make_gemini_request(self, prompt: str, model: str,
                                   temperature: float, max_tokens: int) -> str:
        """Call Gemini generateContent and return the first candidate's text."""
        url = f"{self.endpoint}/{model}:generateContent"
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": prompt}
                    ]
                }
            ],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            }
        }
        params = {"key": self.api_key}

        async with get_http_client() as client:
            response = await client.post(url, json=payload, params=params, timeout=self.timeout)

            async with response:
                if response.status == 200:
                    raw = await response.json()
                    candidates = raw.get("candidates") or []
                    if not candidates:
                        raise APIError(
                            "Empty Gemini response",
                            status_code=200,
                            response_text=json.dumps(raw)[:500]
                        )

                    parts = (candidates[0].get("content") or {}).get("parts") or []
                    return "".join(part.get("text") or "" for part in parts)
                elif response.status == 429:
                    raise APIError("Rate limit exceeded", status_code=429)
                else:
                    error_text = await response.text()
                    logger.error(f"❌ Gemini API error {response.status}: {error_text[:500]}")
                    raise APIError(
                        f"Gemini API error: {response.status}",
                        status_code=response.status,
                        response_text=error_text
                    )

    async def _make_openai_request(self, prompt: str, model: str,
                                   temperature: float, max_tokens: int) -> str:
        """Call an OpenAI-compatible chat completions endpoint."""
        payload = {
            "model": model,
            "messages": [
                {
                    "role": "user",
                    "content": prompt
                }
            ],
            "max_tokens": max_tokens,
            "temperature": temperature
        }
        headers = {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'Authorization': f'Bearer {self.api_key}',
        }

        async with get_http_client() as client:
            response = await client.post(str(self.endpoint), json=payload, headers=headers, timeout=self.timeout)

            async with response:
                if response.status == 200:
                    response_text = await response.text()
                    try:
                        data = json.loads(response_text)
                    except json.JSONDecodeError as e:
                        raise APIError(
                            f"Invalid JSON response from API: {e}",
                            status_code=200,
                            response_text=response_text[:500]
                        ) from e

                    choices = data.get("choices") or []
                    if not choices:
                        raise APIError("No choices in API response", status_code=200,
                                       response_text=response_text[:500])
                    return (choices[0].get("message") or {}).get("content") or ""
                elif response.status == 429:
                    raise APIError("Rate limit exceeded", status_code=429)
                else:
                    error_text = await response.text()
                    logger.error(f"❌ OpenAI-compatible API error {response.status}: {error_text[:500]}")
                    raise APIError(
                        f"OpenAI-compatible API error: {response.status}",
                        status_code=response.status,
                        response_text=error_text
                    )


# Global AI client instance
_ai_client: Optional[AIClient] = None


def get_ai_client() -> AIClient:
    """Get AI client instance."""
    global _ai_client

    if _ai_client is None:
        _ai_client = AIClient()

    return _ai_client
