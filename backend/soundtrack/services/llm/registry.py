"""Provider registry for LLM adapters.

Routes model IDs to the correct adapter implementation based on the model
ID prefix: ollama/ models go to Ollama, everything else to Gemini.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from soundtrack.services.llm.base import LLMAdapter

if TYPE_CHECKING:
    from soundtrack.config import LLMConfig

logger = logging.getLogger(__name__)


def _is_ollama_model(model_id: str) -> bool:
    """Return True if the model ID uses the ollama/ prefix."""
    return model_id.startswith("ollama/")


def get_adapter(
    model_id: Optional[str] = None,
    llm_config: Optional["LLMConfig"] = None,
) -> LLMAdapter:
    """Return the appropriate LLM adapter for the given model ID.

    Routing logic:
    - "ollama/*"  → OllamaAdapter (configured endpoint, optional bearer key)
    - "gemini-*"  → GeminiAdapter
    - anything else → GeminiAdapter (fallback)

    Args:
        model_id: Model identifier string (e.g., "gemini-2.5-flash",
                  "ollama/llava"). Defaults to the configured model.
        llm_config: Optional LLM configuration; defaults to settings.llm.

    Returns:
        Configured LLMAdapter instance ready for use.
    """
    if llm_config is None:
        from soundtrack.config import settings

        llm_config = settings.llm
    model_id = model_id or llm_config.model

    if _is_ollama_model(model_id):
        from soundtrack.services.llm.ollama_adapter import OllamaAdapter

        logger.debug(
            "Routing %s to OllamaAdapter (base_url=%s, has_key=%s)",
            model_id,
            llm_config.ollama_endpoint,
            bool(llm_config.ollama_api_key),
        )
        return OllamaAdapter(
            model_id=model_id,
            base_url=llm_config.ollama_endpoint,
            api_key=llm_config.ollama_api_key,
        )

    # Default: Gemini (handles gemini- models and anything else)
    from soundtrack.services.llm.gemini_adapter import GeminiAdapter

    logger.debug("Routing %s to GeminiAdapter", model_id)
    return GeminiAdapter(model_id=model_id, api_key=llm_config.gemini_api_key or None)
