"""Structured output of the reasoning step.

Field names follow the wire format the reasoning model is instructed to emit
(``suno_prompt``, ``suno_tags``); the Python attributes use neutral names.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROMPT_MAX_CHARS = 500
TAGS_MAX_CHARS = 100


class GenerationDirective(BaseModel):
    """What to render, as decided by the reasoning model.

    The prompt and tag caps are hard limits of the render service. The model
    is asked to respect them; anything longer is clipped rather than
    rejected, since the rest of the directive is still usable.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    scene_description: str = Field(
        description="1-2 sentences describing the environment and what the user is doing"
    )
    activity: str = Field(description="Short label for the detected activity")
    reasoning: str = Field(description="2-3 sentences on the therapeutic approach")
    prompt: str = Field(
        alias="suno_prompt",
        description=f"Music generation prompt, under {PROMPT_MAX_CHARS} characters",
    )
    tags: str = Field(
        alias="suno_tags",
        description=f"Comma-separated style tags, under {TAGS_MAX_CHARS} characters",
    )
    target_bpm: int = Field(strict=True, description="Target tempo in beats per minute")
    energy: str = Field(description="Energy label, e.g. 'low'")
    mood: str = Field(description="Mood label, e.g. 'calming'")

    @field_validator("prompt")
    @classmethod
    def clip_prompt(cls, v: str) -> str:
        return v[:PROMPT_MAX_CHARS]

    @field_validator("tags")
    @classmethod
    def clip_tags(cls, v: str) -> str:
        return v[:TAGS_MAX_CHARS]
