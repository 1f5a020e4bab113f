"""
Per-cycle escalation state.

An EscalationSession holds everything that belongs to one regeneration cycle
for one original input. Only the orchestrator mutates it; every mutator
checks the session invariants and raises SessionInvariantError when a caller
would break them.
"""
from __future__ import annotations

import asyncio
import hashlib
import time
import uuid
from typing import List, Optional, Tuple

from app.core.exceptions import SessionInvariantError
from app.core.intensity import IntensityLevel
from app.core.models import (
    CLOSED_STATES,
    DetectionResult,
    FlaggedSpan,
    ScoreComparison,
    ScoreEntry,
    SessionState,
)


def fingerprint(text: str) -> str:
    """Identity marker for a specific text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class EscalationSession:
    """State for one generation-review cycle."""

    def __init__(
        self,
        original_input: str,
        baseline_intensity: IntensityLevel,
        max_attempts: int,
        threshold: float,
        client_id: Optional[str] = None,
        handle: Optional[str] = None,
    ):
        self.handle = handle or uuid.uuid4().hex
        self._original_input = original_input
        self.client_id = client_id
        self.max_attempts = max_attempts
        self.threshold = threshold
        self.created_at = time.time()

        self._attempt_count = 0
        self._current_intensity = baseline_intensity
        self._history: List[ScoreEntry] = []

        self.state = SessionState.IDLE
        self.last_analyzed_fingerprint: Optional[str] = None
        self.last_result: Optional[DetectionResult] = None
        # Fingerprint of the text currently being analyzed; a completing call
        # whose fingerprint no longer matches is stale.
        self.pending_fingerprint: Optional[str] = None
        self.current_text: Optional[str] = None
        self.notice: Optional[str] = None
        self.overridden = False

        self.lock = asyncio.Lock()

    # -- read-only accessors -------------------------------------------------

    @property
    def original_input(self) -> str:
        return self._original_input

    @property
    def attempt_count(self) -> int:
        return self._attempt_count

    @property
    def current_intensity(self) -> IntensityLevel:
        return self._current_intensity

    @property
    def score_history(self) -> Tuple[ScoreEntry, ...]:
        return tuple(self._history)

    @property
    def closed(self) -> bool:
        return self.state in CLOSED_STATES

    @property
    def attempts_used(self) -> int:
        """Escalation attempts derived from the score history."""
        return max(len(self._history) - 1, 0)

    @property
    def flagged_spans(self) -> Tuple[FlaggedSpan, ...]:
        if self.last_result is None:
            return ()
        return self.last_result.flagged_spans

    def escalation_allowed(self) -> bool:
        return self.attempts_used < self.max_attempts and not self._current_intensity.is_maximal

    def comparison(self) -> Optional[ScoreComparison]:
        """Previous vs. newest score; always the two most recent entries."""
        if len(self._history) < 2:
            return None
        return ScoreComparison(previous=self._history[-2].score, current=self._history[-1].score)

    def is_already_analyzed(self, text: str) -> bool:
        return self.last_analyzed_fingerprint is not None and fingerprint(text) == self.last_analyzed_fingerprint

    # -- mutators ------------------------------------------------------------

    def record_analysis(self, text_fingerprint: str, result: DetectionResult) -> ScoreEntry:
        """Append a score for the current attempt and remember the text."""
        self._ensure_open()
        if len(self._history) != self._attempt_count:
            raise SessionInvariantError(
                f"score history has {len(self._history)} entries for attempt {self._attempt_count}"
            )
        entry = ScoreEntry(attempt=self._attempt_count, score=result.score)
        self._history.append(entry)
        self.last_analyzed_fingerprint = text_fingerprint
        self.last_result = result
        return entry

    def record_escalation(self, next_intensity: IntensityLevel) -> int:
        """Commit one escalation step: bump the attempt count and the intensity."""
        self._ensure_open()
        if self.state == SessionState.ATTEMPTS_EXHAUSTED:
            raise SessionInvariantError("escalation recorded on an exhausted session")
        if self._attempt_count >= self.max_attempts:
            raise SessionInvariantError(
                f"attempt count {self._attempt_count} already at cap {self.max_attempts}"
            )
        if self._attempt_count != self.attempts_used:
            raise SessionInvariantError(
                f"attempt count {self._attempt_count} disagrees with history ({self.attempts_used})"
            )
        if not next_intensity > self._current_intensity:
            raise SessionInvariantError(
                f"intensity may only increase ({self._current_intensity.value} -> {next_intensity.value})"
            )
        self._attempt_count += 1
        self._current_intensity = next_intensity
        return self._attempt_count

    def close(self, state: SessionState) -> None:
        if state not in CLOSED_STATES:
            raise SessionInvariantError(f"{state.value} is not a closing state")
        self.state = state
        self.pending_fingerprint = None

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionInvariantError(f"session {self.handle} is already {self.state.value}")
