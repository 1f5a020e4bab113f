"""
Shared test utilities for all test files.

Fakes for the detection scorer and generator are AsyncMocks, so tests can
queue scores, failures or custom coroutines through side_effect.
"""
from types import SimpleNamespace
from typing import Callable, Optional
from unittest.mock import AsyncMock, MagicMock

from app.core.intensity import IntensityLevel
from app.core.models import DetectionResult, FlaggedSpan
from app.core.settings import Settings
from app.core.state import RegenerationCooldown
from app.services.orchestrator import DetectionRiskOrchestrator

JOB_POST = "Looking for a Python developer to build a small FastAPI backend for our booking app."


def result(score: float, *flagged: str) -> DetectionResult:
    """Build a DetectionResult; each flagged string becomes a span in order."""
    spans = tuple(FlaggedSpan(text=t, reason="uniform sentence length", index=i) for i, t in enumerate(flagged))
    return DetectionResult(score=score, flagged_spans=spans)


def make_scorer(*items) -> AsyncMock:
    """Scorer whose analyze() returns (or raises) the queued items in order."""
    scorer = AsyncMock()
    scorer.analyze.side_effect = list(items)
    return scorer


def draft_for(original_input: str, intensity: IntensityLevel) -> str:
    return f"Proposal draft ({intensity.value}) for: {original_input[:30]}"


def make_generator(text_for: Optional[Callable[[str, IntensityLevel], str]] = None) -> AsyncMock:
    """Generator producing a distinct draft per intensity unless told otherwise."""
    generator = AsyncMock()
    generator.generate.side_effect = text_for or draft_for
    return generator


class FakeClock:
    """Manually advanced monotonic clock for cooldown tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_orchestrator(
    *scores,
    generator: Optional[AsyncMock] = None,
    settings: Optional[Settings] = None,
    cooldown: Optional[RegenerationCooldown] = None,
    sink=None,
) -> DetectionRiskOrchestrator:
    """Orchestrator with queued scores and no regeneration cooldown by default."""
    settings = settings or Settings(regeneration_cooldown_seconds=0)
    return DetectionRiskOrchestrator(
        scorer=make_scorer(*[result(s) if isinstance(s, (int, float)) else s for s in scores]),
        generator=generator or make_generator(),
        settings=settings,
        cooldown=cooldown,
        snapshot_sink=sink,
    )


def chat_response(content: Optional[str]) -> SimpleNamespace:
    """Minimal stand-in for an OpenAI chat completion response."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def mock_openai_client(content: Optional[str] = None, side_effect=None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=chat_response(content), side_effect=side_effect)
    return client
