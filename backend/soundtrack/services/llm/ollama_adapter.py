"""Ollama adapter: directive generation against a local or hosted Ollama server.

Replies are requested with ``format="json"`` and the target schema is
described in the system message; hosted Ollama endpoints do not reliably
enforce a JSON schema passed as ``format``, so validation happens locally
through parse_structured().
"""

import base64
import json
import logging
from typing import Optional, Type

import httpx
from ollama import AsyncClient, ResponseError

from soundtrack.errors import RemoteError
from soundtrack.services.llm.base import LLMAdapter, ModelT, parse_structured

logger = logging.getLogger(__name__)

OLLAMA_PREFIX = "ollama/"


def _schema_instruction(schema: Type[ModelT]) -> str:
    """Describe the expected reply shape, using wire (alias) field names."""
    schema_json = json.dumps(schema.model_json_schema(by_alias=True), indent=2)
    return (
        "\n\nReply with exactly one JSON object and nothing else: no markdown, "
        "no commentary, no code fences. It must match this JSON schema:\n"
        f"{schema_json}"
    )


class OllamaAdapter(LLMAdapter):
    """LLMAdapter over ollama.AsyncClient.

    ``model_id`` may carry the ``ollama/`` routing prefix; it is removed
    before the model name reaches the server. An API key, when configured,
    is sent as a bearer token for hosted deployments.
    """

    def __init__(
        self,
        model_id: str,
        base_url: str = "http://localhost:11434",
        api_key: Optional[str] = None,
    ) -> None:
        self._model = model_id.removeprefix(OLLAMA_PREFIX)
        auth = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = AsyncClient(host=base_url, headers=auth)

    async def _complete(
        self,
        prompt: str,
        schema: Type[ModelT],
        temperature: float,
        system_prompt: Optional[str],
        images: Optional[list[str]] = None,
    ) -> ModelT:
        system = (system_prompt or "") + _schema_instruction(schema)
        user: dict = {"role": "user", "content": prompt}
        if images:
            user["images"] = images

        logger.info(f"Ollama chat model={self._model} images={len(images or [])}")
        try:
            response = await self._client.chat(
                model=self._model,
                messages=[{"role": "system", "content": system.lstrip()}, user],
                format="json",
                options={"temperature": temperature},
                stream=False,
            )
        except ResponseError as e:
            logger.error(f"Ollama error {e.status_code}: {e.error}")
            raise RemoteError(e.error) from e
        except (httpx.HTTPError, ConnectionError) as e:
            logger.error(f"Ollama unreachable: {e}")
            raise RemoteError(f"Ollama request failed: {e}") from e

        return parse_structured(response.message.content, schema)

    async def generate_text(
        self,
        prompt: str,
        schema: Type[ModelT],
        *,
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
    ) -> ModelT:
        return await self._complete(prompt, schema, temperature, system_prompt)

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
        """Send the frame base64-encoded alongside the prompt.

        Needs a vision-capable model (llava, moondream, ...). ``mime_type`` is
        accepted for interface parity; Ollama sniffs the image format itself.
        """
        encoded = base64.b64encode(image_bytes).decode()
        return await self._complete(prompt, schema, temperature, system_prompt, [encoded])
