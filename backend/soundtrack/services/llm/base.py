"""Abstract base class for LLM provider adapters.

Defines the consistent async interface that all adapters must implement,
supporting both text generation and image analysis with structured output.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from soundtrack.errors import InvalidResponse

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_structured(raw: Optional[str], schema: Type[ModelT]) -> ModelT:
    """Validate a raw model reply against ``schema``.

    Some models wrap JSON in markdown code fences even when asked not to;
    those are stripped first.

    Raises:
        InvalidResponse: If the reply is empty, not JSON, or misses a
            required field.
    """
    if not raw or not raw.strip():
        raise InvalidResponse("Invalid response from LLM: empty reply.")

    stripped = raw.strip()
    if stripped.startswith("```"):
        # Remove opening fence (```json or ```)
        first_newline = stripped.find("\n")
        stripped = stripped[first_newline + 1:] if first_newline != -1 else ""
        if stripped.endswith("```"):
            stripped = stripped[:-3].rstrip()

    try:
        return schema.model_validate_json(stripped)
    except ValidationError as e:
        logger.warning(
            "LLM reply failed %s validation (%d errors): %.200s",
            schema.__name__, e.error_count(), stripped,
        )
        raise InvalidResponse("Invalid response from LLM.") from e


class LLMAdapter(ABC):
    """Abstract base class for LLM provider adapters.

    All adapters must implement generate_text() and analyze_image() with
    consistent async signatures. Both methods return validated Pydantic
    model instances using the caller-supplied schema class.

    Adapters make exactly one outbound call per invocation. Provider
    failures are translated into RemoteError, malformed replies into
    InvalidResponse; retrying is left to the caller.
    """

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        schema: Type[ModelT],
        *,
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
    ) -> ModelT:
        """Generate structured text output from a prompt.

        Args:
            prompt: The user prompt to send to the model.
            schema: Pydantic model class defining the expected output structure.
            temperature: Sampling temperature (0.0-1.0). Lower = more deterministic.
            system_prompt: Optional system/instruction prompt.

        Returns:
            Validated instance of the supplied schema class.
        """
        ...

    @abstractmethod
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
        """Analyze an image and return structured output.

        Args:
            image_bytes: Raw bytes of the image to analyze.
            prompt: The user prompt sent alongside the image.
            schema: Pydantic model class defining the expected output structure.
            mime_type: MIME type of the image (e.g., "image/jpeg", "image/png").
            temperature: Sampling temperature (0.0-1.0). Lower = more deterministic.
            system_prompt: Optional system/instruction prompt.

        Returns:
            Validated instance of the supplied schema class.
        """
        ...
