"""Pydantic models for the caller-supplied inputs of a generation run.

GenerationContext is frozen: it is created per run and handed to the
orchestrator by value, so concurrent fan-out runs can share the same taste
snapshot without locking.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field


class StressLevel(str, Enum):
    """Stress/energy category derived from the wearable."""

    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"

    @property
    def label(self) -> str:
        return self.value.capitalize()


# Default readings per stress level: (heart rate bpm, HRV RMSSD ms)
BIOMETRIC_PRESETS: dict[StressLevel, tuple[int, int]] = {
    StressLevel.HIGH: (92, 15),
    StressLevel.MODERATE: (78, 32),
    StressLevel.LOW: (65, 55),
}

DEFAULT_TASTE = '- "Sunflower" by Post Malone\n- "Freedom" by Pharrell Williams'


class TasteProfile(BaseModel):
    """Music preferences collected during onboarding."""

    model_config = ConfigDict(frozen=True)

    genres: list[str] = Field(default_factory=list)
    favorite_songs: list[str] = Field(default_factory=list)
    energy_preference: str = Field(
        default="balanced",
        description="Free-form energy preference, underscores allowed (e.g. 'high_energy')",
    )

    def formatted(self) -> str:
        """Render the profile as the text block the reasoning model expects."""
        lines = [f"Genres: {', '.join(self.genres)}", "Favorite songs/artists:"]
        lines.extend(f"- {song}" for song in self.favorite_songs)
        lines.append(f"Energy preference: {self.energy_preference.replace('_', ' ')}")
        return "\n".join(lines)


def load_taste_snapshot(path: Optional[Path]) -> str:
    """Return the formatted taste profile stored at ``path``.

    Falls back to DEFAULT_TASTE when no profile has been stored. The result
    is a plain string, taken once per run (or once per fan-out) so later
    edits to the file never leak into a run already in flight.
    """
    if path is None or not path.exists():
        return DEFAULT_TASTE
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return TasteProfile.model_validate(data).formatted()


class GenerationContext(BaseModel):
    """Immutable per-run input for the reasoning step."""

    model_config = ConfigDict(frozen=True)

    stress: StressLevel = StressLevel.HIGH
    heart_rate: int = Field(description="Heart rate in bpm")
    hrv: int = Field(description="Heart rate variability (RMSSD) in ms")
    taste: str = Field(default=DEFAULT_TASTE, description="Formatted music-taste snapshot")
    scene: Optional[str] = Field(
        default=None,
        description="Scene descriptor; required when no camera frame accompanies the run",
    )
    instrumental: bool = True
    narrative: Optional[str] = Field(
        default=None,
        description="First-person description of the moment (demo scenarios)",
    )
    musical_direction: Optional[str] = Field(
        default=None,
        description="Energy/mood direction the generated track should follow (demo scenarios)",
    )

    @classmethod
    def for_stress(cls, stress: StressLevel, **kwargs) -> "GenerationContext":
        """Build a context using the preset biometric readings for ``stress``."""
        heart_rate, hrv = BIOMETRIC_PRESETS[stress]
        kwargs.setdefault("heart_rate", heart_rate)
        kwargs.setdefault("hrv", hrv)
        return cls(stress=stress, **kwargs)

    def biometric_reading(self) -> str:
        return (
            f"Heart Rate: {self.heart_rate} bpm\n"
            f"HRV (RMSSD): {self.hrv} ms\n"
            f"\n"
            f"Stress Level: {self.stress.label}"
        )
