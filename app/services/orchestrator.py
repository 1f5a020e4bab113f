"""
Detection-risk orchestrator.

Coordinates one review cycle per original input: score finalized generation
output, classify it, and when it is unsafe offer bounded escalation through
the humanization ladder until the text is safe or no escalation is left.

Each session is exclusively owned here. Steps within a session run one at a
time under the session lock; results of calls that finish after the session
was dismissed, or after the text under analysis was replaced, are discarded
without touching session state.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime
from typing import Dict, Optional, Protocol, Union

from app.core.exceptions import (
    AlreadyMaximalError,
    AnalysisError,
    AttemptsExhaustedError,
    GenerationError,
    NotFoundError,
    RateLimitError,
    SessionStateError,
    ValidationError,
)
from app.core.intensity import IntensityLevel, escalate
from app.core.models import (
    SKIPPED,
    AnalysisOutcome,
    DetectionResult,
    Outcome,
    SessionSnapshot,
    SessionState,
    SessionView,
)
from app.core.risk import RiskClass, classify
from app.core.session import EscalationSession, fingerprint
from app.core.settings import Settings
from app.core.state import RegenerationCooldown
from app.services.generation import Generator
from app.services.scorer import DetectionScorer

logger = logging.getLogger(__name__)

MAX_ACTIVE_SESSIONS = 500  # Prevent memory exhaustion

NOTICE_ANALYSIS_UNAVAILABLE = (
    "AI detection check is unavailable right now. Your proposal is still usable; "
    "review it before sending or retry the check."
)
NOTICE_ATTEMPTS_EXHAUSTED = (
    "Still at or above the detection threshold after {attempts} regeneration attempt(s). "
    "Consider editing the flagged sentences manually."
)
NOTICE_GENERATION_FAILED = "Regeneration failed. The current draft is unchanged."


class SnapshotSink(Protocol):
    def record(self, snapshot: SessionSnapshot) -> None:
        ...


class DetectionRiskOrchestrator:
    """Drives analysis and escalation for independent review sessions."""

    def __init__(
        self,
        scorer: DetectionScorer,
        generator: Generator,
        settings: Optional[Settings] = None,
        cooldown: Optional[RegenerationCooldown] = None,
        snapshot_sink: Optional[SnapshotSink] = None,
    ):
        self.scorer = scorer
        self.generator = generator
        self.settings = settings or Settings()
        self.cooldown = cooldown or RegenerationCooldown(self.settings.regeneration_cooldown_seconds)
        self.snapshot_sink = snapshot_sink
        self._sessions: Dict[str, EscalationSession] = {}
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Session registry
    # ------------------------------------------------------------------

    def start_session(
        self,
        original_input: str,
        baseline_intensity: Optional[Union[IntensityLevel, str]] = None,
        client_id: Optional[str] = None,
    ) -> str:
        """
        Open a review session for one original input.

        Threshold and attempt cap are read from settings now and stay fixed
        for the session's lifetime.

        Returns:
            Opaque session handle
        """
        if not original_input or not original_input.strip():
            raise ValidationError("Original input cannot be empty", field="original_input")
        baseline = (
            IntensityLevel.parse(baseline_intensity)
            if baseline_intensity is not None
            else self.settings.default_intensity
        )
        session = EscalationSession(
            original_input=original_input,
            baseline_intensity=baseline,
            max_attempts=self.settings.max_attempts,
            threshold=self.settings.detection_threshold,
            client_id=client_id,
        )
        with self._registry_lock:
            if len(self._sessions) >= MAX_ACTIVE_SESSIONS:
                self._evict_oldest_locked()
            self._sessions[session.handle] = session
        logger.info(
            f"Started session {session.handle} (intensity={baseline.value}, "
            f"threshold={session.threshold}, max_attempts={session.max_attempts})"
        )
        return session.handle

    def _evict_oldest_locked(self) -> None:
        oldest = sorted(self._sessions.values(), key=lambda s: s.created_at)
        for session in oldest[: max(1, MAX_ACTIVE_SESSIONS // 10)]:
            self._sessions.pop(session.handle, None)
            session.close(SessionState.DISMISSED)
            logger.warning(f"Evicted idle session {session.handle}")

    def _get(self, handle: str) -> EscalationSession:
        with self._registry_lock:
            session = self._sessions.get(handle)
        if session is None:
            raise NotFoundError("Session", handle)
        return session

    def _is_stale(self, session: EscalationSession, text_fingerprint: Optional[str]) -> bool:
        with self._registry_lock:
            active = self._sessions.get(session.handle) is session
        if not active or session.closed:
            return True
        return text_fingerprint is not None and session.pending_fingerprint != text_fingerprint

    @staticmethod
    def _ensure_idle(session: EscalationSession) -> None:
        if session.lock.locked():
            raise SessionStateError(
                "Another step is already running for this session",
                state=session.state.value
            )

    @property
    def active_session_count(self) -> int:
        with self._registry_lock:
            return len(self._sessions)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def submit_generation(self, handle: str, text: str) -> Outcome:
        """
        Analyze finalized generation output for the session's current attempt.

        Text that was already analyzed in this session is never scored again
        and yields SKIPPED. New text replaces any draft still being analyzed;
        the older in-flight result is then discarded.
        """
        session = self._get(handle)
        if not text or not text.strip():
            raise ValidationError("Generated text cannot be empty", field="text")

        text_fingerprint = fingerprint(text)
        if text_fingerprint == session.last_analyzed_fingerprint or text_fingerprint == session.pending_fingerprint:
            logger.info(f"Session {handle}: text already analyzed, skipping")
            return SKIPPED

        if session.state not in (SessionState.IDLE, SessionState.ANALYZING, SessionState.ANALYSIS_UNAVAILABLE):
            raise SessionStateError(
                "Session already judged its output; start a new session for a new generation",
                state=session.state.value
            )
        if len(session.score_history) != session.attempt_count:
            raise SessionStateError("Current attempt was already analyzed", state=session.state.value)

        session.current_text = text
        session.pending_fingerprint = text_fingerprint
        async with session.lock:
            if self._is_stale(session, text_fingerprint):
                logger.info(f"Session {handle}: draft replaced before analysis started, discarding")
                return SKIPPED
            return await self._analyze(session, text, text_fingerprint)

    async def begin_analysis(self, handle: str, text: str) -> Outcome:
        """Alias of submit_generation kept for callers that name the guarded step."""
        return await self.submit_generation(handle, text)

    async def retry_analysis(self, handle: str) -> Outcome:
        """Manually re-run the check after the scorer was unavailable."""
        session = self._get(handle)
        self._ensure_idle(session)
        if session.state != SessionState.ANALYSIS_UNAVAILABLE or session.current_text is None:
            raise SessionStateError("Nothing to retry; analysis is not unavailable", state=session.state.value)
        text_fingerprint = fingerprint(session.current_text)
        session.pending_fingerprint = text_fingerprint
        async with session.lock:
            return await self._analyze(session, session.current_text, text_fingerprint)

    async def _analyze(self, session: EscalationSession, text: str, text_fingerprint: str) -> Outcome:
        """Run the scorer and apply its result. Caller holds the session lock."""
        previous_state = session.state
        session.state = SessionState.ANALYZING
        session.notice = None
        try:
            result = await self.scorer.analyze(text)
        except asyncio.CancelledError:
            if not self._is_stale(session, text_fingerprint):
                self._restore_after_cancelled_analysis(session, previous_state)
            raise
        except AnalysisError as e:
            return self._apply_failure(session, text_fingerprint, e)
        except Exception as e:
            logger.error(f"Session {session.handle}: scorer raised unexpectedly: {e}", exc_info=True)
            return self._apply_failure(session, text_fingerprint, AnalysisError(str(e)))

        if self._is_stale(session, text_fingerprint):
            logger.info(f"Session {session.handle}: discarding stale analysis result ({result.score})")
            return SKIPPED
        return self._apply_result(session, text_fingerprint, result)

    @staticmethod
    def _restore_after_cancelled_analysis(session: EscalationSession, previous_state: SessionState) -> None:
        # The draft stays unscored, so the same text can be submitted or retried again.
        session.pending_fingerprint = None
        escalated_draft = session.attempt_count > 0
        if escalated_draft or previous_state == SessionState.ANALYSIS_UNAVAILABLE:
            session.state = SessionState.ANALYSIS_UNAVAILABLE
            session.notice = NOTICE_ANALYSIS_UNAVAILABLE
        else:
            session.state = SessionState.IDLE
        logger.warning(f"Session {session.handle}: analysis cancelled, session back in {session.state.value}")

    def _apply_failure(self, session: EscalationSession, text_fingerprint: str, error: AnalysisError) -> Outcome:
        if self._is_stale(session, text_fingerprint):
            logger.info(f"Session {session.handle}: discarding stale analysis failure")
            return SKIPPED
        session.pending_fingerprint = None
        session.state = SessionState.ANALYSIS_UNAVAILABLE
        session.notice = NOTICE_ANALYSIS_UNAVAILABLE
        logger.warning(
            f"Session {session.handle}: analysis unavailable at attempt {session.attempt_count}: {error.message}"
        )
        return AnalysisOutcome(
            attempt=session.attempt_count,
            threshold=session.threshold,
            state=session.state,
            comparison=session.comparison(),
            notice=session.notice,
        )

    def _apply_result(self, session: EscalationSession, text_fingerprint: str, result: DetectionResult) -> AnalysisOutcome:
        session.pending_fingerprint = None
        entry = session.record_analysis(text_fingerprint, result)
        classification = classify(result.score, session.threshold)

        if classification == RiskClass.SAFE:
            session.state = SessionState.SAFE
            session.notice = None
        elif session.escalation_allowed():
            session.state = SessionState.AWAITING_ESCALATION_DECISION
            session.notice = None
        else:
            session.state = SessionState.ATTEMPTS_EXHAUSTED
            session.notice = NOTICE_ATTEMPTS_EXHAUSTED.format(attempts=session.attempts_used)

        logger.info(
            f"Session {session.handle}: attempt {entry.attempt} scored {result.score} "
            f"(threshold {session.threshold}) -> {classification.value}, state={session.state.value}"
        )
        return AnalysisOutcome(
            attempt=entry.attempt,
            threshold=session.threshold,
            state=session.state,
            score=result.score,
            classification=classification,
            flagged_spans=result.flagged_spans,
            comparison=session.comparison(),
            notice=session.notice,
        )

    # ------------------------------------------------------------------
    # Escalation
    # ------------------------------------------------------------------

    async def request_escalation(self, handle: str, client_attempt_count: Optional[int] = None) -> Outcome:
        """
        Regenerate at the next intensity and analyze the new text.

        client_attempt_count is a hint from the caller and is never used to
        enforce the cap; the cap comes from this session's score history.

        Raises:
            AttemptsExhaustedError: If the attempt cap was already reached
            AlreadyMaximalError: If the intensity is already at its maximum
            RateLimitError: If the regeneration cooldown is still running
            GenerationError: If the generator failed; the session is unchanged
            SessionStateError: If the session is not awaiting an escalation decision
        """
        session = self._get(handle)
        self._ensure_idle(session)

        async with session.lock:
            attempts_used = session.attempts_used
            if client_attempt_count is not None and client_attempt_count != attempts_used:
                logger.warning(
                    f"Session {handle}: caller reported attempt count {client_attempt_count}, "
                    f"history says {attempts_used}; using history"
                )

            if session.state == SessionState.ATTEMPTS_EXHAUSTED:
                raise self._exhaustion_error(session)
            if session.state != SessionState.AWAITING_ESCALATION_DECISION:
                raise SessionStateError(
                    f"Escalation is not available in state '{session.state.value}'",
                    state=session.state.value
                )
            if attempts_used >= session.max_attempts:
                session.state = SessionState.ATTEMPTS_EXHAUSTED
                session.notice = NOTICE_ATTEMPTS_EXHAUSTED.format(attempts=attempts_used)
                raise AttemptsExhaustedError(session.max_attempts)

            remaining = self.cooldown.remaining_seconds(session.client_id)
            if remaining > 0:
                raise RateLimitError(
                    f"Regeneration cooldown active, retry in {remaining}s",
                    retry_after=remaining
                )

            try:
                next_intensity = escalate(session.current_intensity)
            except AlreadyMaximalError:
                session.state = SessionState.ATTEMPTS_EXHAUSTED
                session.notice = NOTICE_ATTEMPTS_EXHAUSTED.format(attempts=attempts_used)
                logger.info(f"Session {handle}: ladder exhausted at {session.current_intensity.value}")
                raise

            session.state = SessionState.ESCALATING
            logger.info(
                f"Session {handle}: escalating {session.current_intensity.value} -> {next_intensity.value} "
                f"(attempt {attempts_used + 1}/{session.max_attempts})"
            )
            try:
                text = await self.generator.generate(session.original_input, next_intensity)
            except asyncio.CancelledError:
                if not self._is_stale(session, None):
                    session.state = SessionState.AWAITING_ESCALATION_DECISION
                    session.pending_fingerprint = None
                    logger.warning(f"Session {handle}: regeneration cancelled, draft unchanged")
                raise
            except Exception as e:
                if self._is_stale(session, None):
                    logger.info(f"Session {handle}: generation failed after dismissal, ignoring")
                    return SKIPPED
                session.state = SessionState.AWAITING_ESCALATION_DECISION
                session.notice = NOTICE_GENERATION_FAILED
                if isinstance(e, GenerationError):
                    logger.warning(f"Session {handle}: regeneration failed: {e.message}")
                    raise
                logger.error(f"Session {handle}: generator raised unexpectedly: {e}", exc_info=True)
                raise GenerationError(str(e), details={"intensity": next_intensity.value})

            if self._is_stale(session, None):
                logger.info(f"Session {handle}: discarding regeneration finished after dismissal")
                return SKIPPED
            if not text or not text.strip():
                session.state = SessionState.AWAITING_ESCALATION_DECISION
                session.notice = NOTICE_GENERATION_FAILED
                raise GenerationError("Generator returned empty text", details={"intensity": next_intensity.value})

            self.cooldown.record(session.client_id)
            session.record_escalation(next_intensity)
            session.current_text = text
            text_fingerprint = fingerprint(text)

            if text_fingerprint == session.last_analyzed_fingerprint:
                # Identical output is not scored twice; its judgment carries over.
                logger.info(f"Session {handle}: regeneration produced identical text, reusing last score")
                return self._apply_result(session, text_fingerprint, session.last_result)

            session.pending_fingerprint = text_fingerprint
            return await self._analyze(session, text, text_fingerprint)

    @staticmethod
    def _exhaustion_error(session: EscalationSession) -> Exception:
        if session.attempts_used >= session.max_attempts:
            return AttemptsExhaustedError(session.max_attempts)
        return AlreadyMaximalError(session.current_intensity.value)

    # ------------------------------------------------------------------
    # Views and closing
    # ------------------------------------------------------------------

    def get_state(self, handle: str) -> SessionView:
        session = self._get(handle)
        return SessionView(
            handle=session.handle,
            state=session.state,
            current_intensity=session.current_intensity,
            attempt_count=session.attempt_count,
            max_attempts=session.max_attempts,
            threshold=session.threshold,
            score_history=session.score_history,
            flagged_spans=session.flagged_spans,
            comparison=session.comparison(),
            can_escalate=session.state == SessionState.AWAITING_ESCALATION_DECISION and session.escalation_allowed(),
            notice=session.notice,
            current_text=session.current_text,
        )

    def accept(self, handle: str, override: bool = False) -> SessionSnapshot:
        """
        Close the session keeping the current draft.

        An unsafe draft that could still be escalated is only accepted with
        override=True; the snapshot then records the override.
        """
        session = self._get(handle)
        self._ensure_idle(session)
        if session.state in (SessionState.IDLE, SessionState.ANALYZING, SessionState.ESCALATING):
            raise SessionStateError("No judged draft to accept yet", state=session.state.value)
        if session.state == SessionState.AWAITING_ESCALATION_DECISION and not override:
            raise ValidationError(
                "Draft is above the detection threshold; accept with override to keep it",
                field="override"
            )

        last = session.score_history[-1] if session.score_history else None
        overridden = last is not None and session.state != SessionState.ANALYSIS_UNAVAILABLE \
            and classify(last.score, session.threshold) == RiskClass.UNSAFE

        judged_state = session.state
        session.overridden = overridden
        with self._registry_lock:
            self._sessions.pop(handle, None)
        session.close(SessionState.ACCEPTED)

        snapshot = self._snapshot(session, judged_state, overridden)
        if overridden:
            logger.info(f"Session {handle}: unsafe draft accepted by override (score {last.score})")
        else:
            logger.info(f"Session {handle}: accepted")
        if self.snapshot_sink is not None:
            try:
                self.snapshot_sink.record(snapshot)
            except Exception as e:
                logger.error(f"Session {handle}: failed to record snapshot: {e}", exc_info=True)
        return snapshot

    def dismiss(self, handle: str) -> None:
        """Release a session. Unknown or already released handles are ignored."""
        with self._registry_lock:
            session = self._sessions.pop(handle, None)
        if session is None:
            return
        if not session.closed:
            session.close(SessionState.DISMISSED)
        logger.info(f"Session {handle}: dismissed")

    @staticmethod
    def _snapshot(session: EscalationSession, final_state: SessionState, overridden: bool) -> SessionSnapshot:
        return SessionSnapshot(
            handle=session.handle,
            client_id=session.client_id,
            original_input=session.original_input,
            final_text=session.current_text,
            final_state=final_state,
            final_intensity=session.current_intensity,
            attempt_count=session.attempt_count,
            threshold=session.threshold,
            score_history=session.score_history,
            overridden=overridden,
            closed_at=datetime.now().isoformat(),
        )
