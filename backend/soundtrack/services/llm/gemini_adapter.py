"""Gemini adapter for the LLM abstraction layer.

Wraps the google-genai client with JSON response mode. The reply is
validated locally against the caller's schema rather than through
``response_schema``, because the directive schema uses wire aliases the
SDK's schema conversion does not carry over.
"""

import logging
from typing import Optional, Type

import httpx
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from soundtrack.errors import RemoteError
from soundtrack.services.gemini_client import get_gemini_client
from soundtrack.services.llm.base import LLMAdapter, ModelT, parse_structured

logger = logging.getLogger(__name__)


class GeminiAdapter(LLMAdapter):
    """LLM adapter backed by the Gemini Developer API (google-genai SDK)."""

    def __init__(self, model_id: str, api_key: Optional[str] = None) -> None:
        """Initialize adapter for the given Gemini model.

        Args:
            model_id: Gemini model identifier (e.g., "gemini-2.5-flash").
            api_key: Optional API key; defaults to configuration.
        """
        self._model_id = model_id
        self._api_key = api_key

    def _config(
        self, temperature: float, system_prompt: Optional[str]
    ) -> genai_types.GenerateContentConfig:
        if system_prompt:
            return genai_types.GenerateContentConfig(
                temperature=temperature,
                response_mime_type="application/json",
                system_instruction=system_prompt,
            )
        return genai_types.GenerateContentConfig(
            temperature=temperature,
            response_mime_type="application/json",
        )

    async def _generate(self, contents, config) -> Optional[str]:
        client = get_gemini_client(self._api_key)
        logger.info(f"Gemini generate_content model={self._model_id}")
        try:
            response = await client.aio.models.generate_content(
                model=self._model_id,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            logger.error(f"Gemini API error {e.code}: {e.message}")
            raise RemoteError(e.message or f"Gemini request failed ({e.code})") from e
        except httpx.HTTPError as e:
            logger.error(f"Gemini transport error: {e}")
            raise RemoteError(f"Gemini request failed: {e}") from e
        return response.text

    async def generate_text(
        self,
        prompt: str,
        schema: Type[ModelT],
        *,
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
    ) -> ModelT:
        """Generate structured text using Gemini.

        Args:
            prompt: User prompt to send.
            schema: Pydantic model class for structured output.
            temperature: Sampling temperature.
            system_prompt: Optional system instruction.

        Returns:
            Validated Pydantic model instance.
        """
        raw = await self._generate(prompt, self._config(temperature, system_prompt))
        return parse_structured(raw, schema)

    async def analyze_image(
        self,
        image_bytes: bytes,
        prompt: str,
        schema: Type[ModelT],
        *,
        mime_type: str = "image/jpeg",
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
    ) -> ModelT:
        """Analyze an image using Gemini vision capabilities.

        Args:
            image_bytes: Raw image bytes.
            prompt: User prompt sent alongside the image.
            schema: Pydantic model class for structured output.
            mime_type: Image MIME type.
            temperature: Sampling temperature.
            system_prompt: Optional system instruction.

        Returns:
            Validated Pydantic model instance.
        """
        image_part = genai_types.Part.from_bytes(
            data=image_bytes,
            mime_type=mime_type,
        )
        raw = await self._generate(
            [prompt, image_part], self._config(temperature, system_prompt)
        )
        return parse_structured(raw, schema)
