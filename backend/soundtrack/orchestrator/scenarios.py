"""Predefined demo scenarios for the three-way fan-out."""

from dataclasses import dataclass

from soundtrack.schemas.context import GenerationContext, StressLevel


@dataclass(frozen=True)
class DemoScenario:
    id: str
    title: str
    stress: StressLevel
    heart_rate: int
    hrv: int
    scene: str
    narrative: str
    musical_direction: str
    instrumental: bool = True

    def to_context(self, taste: str) -> GenerationContext:
        """Build the run input for this scenario around a shared taste snapshot."""
        return GenerationContext(
            stress=self.stress,
            heart_rate=self.heart_rate,
            hrv=self.hrv,
            taste=taste,
            scene=self.scene,
            instrumental=self.instrumental,
            narrative=self.narrative,
            musical_direction=self.musical_direction,
        )


DEMO_SCENARIOS: tuple[DemoScenario, ...] = (
    DemoScenario(
        id="hackathon",
        title="Late night at a hackathon",
        stress=StressLevel.MODERATE,
        heart_rate=78,
        hrv=32,
        scene=(
            "Indoor hackathon venue after midnight, dim room lit by monitors, "
            "people coding, moderate focus"
        ),
        narrative=(
            "It is nearly 3 AM and the room glows with screens. Keyboards tap "
            "all around me. My pulse is up, but it is concentration rather "
            "than worry, and I want to stay in this flow."
        ),
        musical_direction=(
            "ENERGY: steady and locked-in deep work. Give it a real groove and "
            "forward motion around 70-80 BPM; avoid floating ambient pads. "
            "Build on the user's favorite genres but keep it hypnotic and "
            "focused, like a late-night productivity playlist."
        ),
    ),
    DemoScenario(
        id="squash",
        title="Mid-match intensity",
        stress=StressLevel.HIGH,
        heart_rate=156,
        hrv=18,
        scene=(
            "First-person view of a squash rally on an indoor court, rapid "
            "movement, competitive high-intensity exertion"
        ),
        narrative=(
            "The ball cracks off the front wall and my opponent is right "
            "behind me. Legs burning, heart hammering, every shot decided in "
            "a split second. I am not anxious. I am switched on."
        ),
        musical_direction=(
            "ENERGY: controlled, precise intensity. Fast (120-135 BPM) yet "
            "tight and clean rather than chaotic. A driving rhythm that holds "
            "an athlete's tunnel vision mid-rally, drawn from the most "
            "focused, propulsive side of the user's favorite music."
        ),
        instrumental=False,
    ),
    DemoScenario(
        id="nature",
        title="A walk through the trees",
        stress=StressLevel.LOW,
        heart_rate=62,
        hrv=58,
        scene=(
            "Outdoor forest trail in morning sunlight, birdsong, calm and "
            "restorative atmosphere"
        ),
        narrative=(
            "Early light comes through the leaves and birds call somewhere "
            "overhead. My breathing is slow and easy. I want sound that "
            "blends into all of this instead of covering it."
        ),
        musical_direction=(
            "ENERGY: open, organic, unhurried. Very slow (55-65 BPM) with "
            "plenty of space between notes. Find the most stripped-back, "
            "acoustic version of the user's taste; nothing that sounds "
            "compressed or synthetic."
        ),
    ),
)


def get_scenario(scenario_id: str) -> DemoScenario:
    for scenario in DEMO_SCENARIOS:
        if scenario.id == scenario_id:
            return scenario
    raise KeyError(f"Unknown demo scenario: {scenario_id}")
