"""Reasoning step: turn a captured scene and context into a GenerationDirective.

Two request shapes are supported:
- camera mode: a captured frame is downscaled, JPEG-encoded and sent with
  the scene template;
- scene mode (demo scenarios): text only, with the scene, narrative and
  musical direction spelled out in the user message.

No retry happens here. A failed reasoning call is surfaced immediately and
the orchestrator treats it as fatal for the run.
"""

import asyncio
import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

from soundtrack.errors import InvalidImage
from soundtrack.schemas.context import GenerationContext
from soundtrack.schemas.directive import GenerationDirective
from soundtrack.services.llm import LLMAdapter
from soundtrack.services.prompt_templates import (
    DEMO_SYSTEM_PROMPT,
    SCENE_SYSTEM_PROMPT,
    render_template,
)

logger = logging.getLogger(__name__)


def prepare_frame(frame: bytes, max_dimension: int = 512, quality: int = 40) -> bytes:
    """Downscale a captured frame and re-encode it as JPEG.

    The longest side is clamped to ``max_dimension``; smaller frames keep
    their size. Synchronous helper called via asyncio.to_thread.

    Raises:
        InvalidImage: If the bytes are not a decodable image.
    """
    try:
        img = Image.open(io.BytesIO(frame))
        img = img.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImage() from e

    if max(img.size) > max_dimension:
        img.thumbnail((max_dimension, max_dimension))

    out = io.BytesIO()
    img.save(out, "JPEG", quality=quality)
    return out.getvalue()


def build_user_message(context: GenerationContext, with_frame: bool) -> str:
    """Render the per-run user message for the reasoning model."""
    parts = [
        "Here is the user's current data:",
        "",
        "**Biometric Reading:**",
        context.biometric_reading(),
        "",
        "**Music Taste:**",
        context.taste,
    ]
    if context.scene:
        parts += ["", "**Scene:**", context.scene]
    if context.narrative:
        parts += ["", "**What this moment feels like (first-person):**", context.narrative]
    if context.musical_direction:
        parts += ["", "**Musical Direction (FOLLOW THIS CLOSELY):**", context.musical_direction]

    parts.append("")
    if with_frame:
        parts.append("**Photo** is attached. Generate the music therapy JSON.")
    else:
        parts.append(
            "Generate the music therapy JSON. The user's music taste is the sonic "
            "anchor and the musical direction sets the energy; combine them, and "
            "name the song(s) you drew from in your reasoning."
        )
    return "\n".join(parts)


class PromptGenerator:
    """Calls the reasoning model and returns a validated directive."""

    def __init__(
        self,
        adapter: LLMAdapter,
        *,
        temperature: float = 0.7,
        frame_max_dimension: int = 512,
        frame_jpeg_quality: int = 40,
    ) -> None:
        self._adapter = adapter
        self._temperature = temperature
        self._frame_max_dimension = frame_max_dimension
        self._frame_jpeg_quality = frame_jpeg_quality

    async def generate(
        self,
        context: GenerationContext,
        system_template: Optional[str] = None,
        *,
        frame: Optional[bytes] = None,
    ) -> GenerationDirective:
        """Request a directive for ``context``.

        Args:
            context: Immutable run input.
            system_template: System prompt with a ``{VOCAL_INSTRUCTION}`` slot.
                Defaults to the scene template when a frame is given and to
                the demo template otherwise.
            frame: Optional captured camera frame (any Pillow-readable format).

        Returns:
            The validated GenerationDirective.

        Raises:
            InvalidImage: If the frame cannot be decoded.
            InvalidResponse: If the reply misses required fields.
            RemoteError: If the provider reports an error.
        """
        if system_template is None:
            system_template = SCENE_SYSTEM_PROMPT if frame is not None else DEMO_SYSTEM_PROMPT
        system_prompt = render_template(system_template, context.instrumental)
        user_message = build_user_message(context, with_frame=frame is not None)

        if frame is not None:
            image_bytes = await asyncio.to_thread(
                prepare_frame, frame, self._frame_max_dimension, self._frame_jpeg_quality
            )
            logger.info(
                f"Requesting directive with {len(image_bytes)}-byte frame "
                f"(stress={context.stress.value}, instrumental={context.instrumental})"
            )
            directive = await self._adapter.analyze_image(
                image_bytes,
                user_message,
                GenerationDirective,
                mime_type="image/jpeg",
                temperature=self._temperature,
                system_prompt=system_prompt,
            )
        else:
            logger.info(
                f"Requesting text-only directive "
                f"(stress={context.stress.value}, instrumental={context.instrumental})"
            )
            directive = await self._adapter.generate_text(
                user_message,
                GenerationDirective,
                temperature=self._temperature,
                system_prompt=system_prompt,
            )

        logger.info(
            f"Directive: activity={directive.activity} bpm={directive.target_bpm} "
            f"energy={directive.energy} mood={directive.mood} tags={directive.tags!r}"
        )
        return directive
