"""Gemini client wrapper using google-genai SDK.

This module provides cached clients for the Gemini Developer API.
Authentication uses the configured API key, falling back to the
GEMINI_API_KEY / GOOGLE_API_KEY environment variables read by the SDK.

Usage:
    from soundtrack.services.gemini_client import get_gemini_client

    client = get_gemini_client()                 # configured key
    client = get_gemini_client(api_key="...")    # explicit key
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from google import genai

from soundtrack.config import settings

# Load .env for GEMINI_API_KEY / GOOGLE_API_KEY fallback
load_dotenv(Path(__file__).resolve().parent.parent.parent.parent / ".env")

# Per-key client cache ("" = SDK environment lookup)
_clients: dict[str, genai.Client] = {}


def get_gemini_client(api_key: Optional[str] = None) -> genai.Client:
    """Get or create a Gemini client for the given API key.

    Clients are cached per key so repeated calls are cheap.

    Args:
        api_key: Gemini API key. Defaults to settings.llm.gemini_api_key,
                 then to the SDK's environment lookup.

    Returns:
        genai.Client: Configured client instance for the Gemini API
    """
    key = api_key or settings.llm.gemini_api_key or ""

    if key not in _clients:
        _clients[key] = genai.Client(api_key=key) if key else genai.Client()

    return _clients[key]
