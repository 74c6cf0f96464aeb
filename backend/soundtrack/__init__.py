"""SoundTrack - scene-aware music generation pipeline.

This module provides startup validation functions to ensure the credentials
needed by the configured providers are available before a run begins.
Call validate_dependencies() during application startup.
"""

import logging
import os

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def validate_dependencies() -> None:
    """Validate that required provider credentials are configured.

    This function should be called during application startup to fail fast
    with clear setup instructions if credentials are missing.

    Raises:
        RuntimeError: If the render token or the reasoning model key is missing.
    """
    from soundtrack.config import settings
    from soundtrack.services.llm.registry import _is_ollama_model

    missing = []
    if not settings.render.bearer_token:
        missing.append("SOUNDTRACK_RENDER__BEARER_TOKEN")

    # Every non-ollama model is routed to Gemini; the SDK also reads its own env vars
    gemini_key = (
        settings.llm.gemini_api_key
        or os.environ.get("GEMINI_API_KEY")
        or os.environ.get("GOOGLE_API_KEY")
    )
    if not _is_ollama_model(settings.llm.model) and not gemini_key:
        missing.append("SOUNDTRACK_LLM__GEMINI_API_KEY (or GEMINI_API_KEY)")

    if missing:
        raise RuntimeError(
            "Missing credentials: " + ", ".join(missing) + ".\n"
            "Set them in the environment, in .env, or under the matching "
            "section of config.yaml."
        )
    logger.info(
        "Credentials validated (llm=%s, render=%s)",
        settings.llm.model,
        settings.render.base_url,
    )
