"""
Value types shared by the scorer, the session and the orchestrator.

Everything here is immutable: scores and flagged spans are produced fresh for
a specific text snapshot, and views/snapshots are copies handed to callers.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from app.core.intensity import IntensityLevel
from app.core.risk import RiskClass


class SessionState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    SAFE = "safe"
    AWAITING_ESCALATION_DECISION = "awaiting_escalation_decision"
    ESCALATING = "escalating"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    ANALYSIS_UNAVAILABLE = "analysis_unavailable"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"


CLOSED_STATES = frozenset({SessionState.ACCEPTED, SessionState.DISMISSED})


class SkippedType:
    """Sentinel returned when text was already analyzed in this session."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SKIPPED"

    def __bool__(self) -> bool:
        return False


SKIPPED = SkippedType()


@dataclass(frozen=True)
class FlaggedSpan:
    """A sentence-level region of analyzed text and why it was flagged."""
    text: str
    reason: str = ""
    index: int = 0


@dataclass(frozen=True)
class DetectionResult:
    """Score and flagged spans returned by a detection scorer for one text."""
    score: float
    flagged_spans: Tuple[FlaggedSpan, ...] = ()


@dataclass(frozen=True)
class ScoreEntry:
    attempt: int
    score: float


@dataclass(frozen=True)
class ScoreComparison:
    """The immediately preceding score next to the newest one."""
    previous: float
    current: float

    @property
    def delta(self) -> float:
        return self.current - self.previous

    @property
    def improved(self) -> bool:
        return self.current < self.previous


@dataclass(frozen=True)
class AnalysisOutcome:
    """
    Result of one analysis step within a session.

    When the scorer failed, score and classification are None, the state is
    ANALYSIS_UNAVAILABLE and notice explains why.
    """
    attempt: int
    threshold: float
    state: SessionState
    score: Optional[float] = None
    classification: Optional[RiskClass] = None
    flagged_spans: Tuple[FlaggedSpan, ...] = ()
    comparison: Optional[ScoreComparison] = None
    notice: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.score is not None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        data["classification"] = self.classification.value if self.classification else None
        return data


# What an analysis or escalation step returns
Outcome = Union[AnalysisOutcome, SkippedType]


@dataclass(frozen=True)
class SessionView:
    """Read-only view of a session for the UI or an API caller."""
    handle: str
    state: SessionState
    current_intensity: IntensityLevel
    attempt_count: int
    max_attempts: int
    threshold: float
    score_history: Tuple[ScoreEntry, ...]
    flagged_spans: Tuple[FlaggedSpan, ...] = ()
    comparison: Optional[ScoreComparison] = None
    can_escalate: bool = False
    notice: Optional[str] = None
    current_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        data["current_intensity"] = self.current_intensity.value
        return data


@dataclass(frozen=True)
class SessionSnapshot:
    """Detached copy of a closed session, handed to persistence collaborators."""
    handle: str
    client_id: Optional[str]
    original_input: str
    final_text: Optional[str]
    final_state: SessionState
    final_intensity: IntensityLevel
    attempt_count: int
    threshold: float
    score_history: Tuple[ScoreEntry, ...]
    overridden: bool = False
    closed_at: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def final_score(self) -> Optional[float]:
        if not self.score_history:
            return None
        return self.score_history[-1].score

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["final_state"] = self.final_state.value
        data["final_intensity"] = self.final_intensity.value
        data["final_score"] = self.final_score
        return data
