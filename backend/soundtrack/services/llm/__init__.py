"""LLM provider abstraction layer.

Provides a unified async interface for structured text generation and image
analysis across multiple LLM providers (Gemini, Ollama).

Usage:
    from soundtrack.services.llm import get_adapter, LLMAdapter

    adapter = get_adapter("gemini-2.5-flash")
    result = await adapter.generate_text(prompt, MySchema)

    adapter = get_adapter("ollama/llava")
    result = await adapter.analyze_image(image_bytes, prompt, MySchema)
"""

from soundtrack.services.llm.base import LLMAdapter
from soundtrack.services.llm.registry import get_adapter

__all__ = ["LLMAdapter", "get_adapter"]
