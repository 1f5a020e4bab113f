"""
Review session API routes.

This module exposes the detection-risk orchestrator: opening a session,
submitting finalized generation output, reading state, requesting an
escalation, retrying an unavailable analysis, accepting and dismissing.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.core.dependencies import get_orchestrator
from app.core.models import AnalysisOutcome
from app.services.orchestrator import DetectionRiskOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


# --- Request Models ---

class StartSessionRequest(BaseModel):
    """Request model for opening a review session."""
    original_input: str = Field(..., min_length=1)
    baseline_intensity: Optional[str] = None
    client_id: Optional[str] = None


class SubmitGenerationRequest(BaseModel):
    """Finalized generation output to analyze."""
    text: str = Field(..., min_length=1)


class EscalationRequest(BaseModel):
    # Reported by the client for diagnostics only; never enforces the cap
    attempt_count: Optional[int] = None


class AcceptRequest(BaseModel):
    override: bool = False


def _outcome_response(outcome, session_id: str) -> JSONResponse:
    if isinstance(outcome, AnalysisOutcome):
        return JSONResponse({"session_id": session_id, "skipped": False, "outcome": outcome.to_dict()})
    return JSONResponse({"session_id": session_id, "skipped": True, "outcome": None})


# --- Routes ---

@router.post("")
async def start_session(
    request: StartSessionRequest,
    orchestrator: DetectionRiskOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """
    Open a review session for one original input (job content).

    Returns:
        JSONResponse with the session id and its initial state
    """
    handle = orchestrator.start_session(
        request.original_input,
        baseline_intensity=request.baseline_intensity,
        client_id=request.client_id,
    )
    return JSONResponse(
        {"session_id": handle, "session": orchestrator.get_state(handle).to_dict()},
        status_code=201,
    )


@router.post("/{session_id}/generation")
async def submit_generation(
    session_id: str,
    request: SubmitGenerationRequest,
    orchestrator: DetectionRiskOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """
    Submit finalized generation output for analysis.

    Text already analyzed in this session is not analyzed again; the
    response then has "skipped": true.
    """
    outcome = await orchestrator.submit_generation(session_id, request.text)
    return _outcome_response(outcome, session_id)


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    orchestrator: DetectionRiskOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Get the current state, score history and flagged spans of a session."""
    return JSONResponse(orchestrator.get_state(session_id).to_dict())


@router.post("/{session_id}/escalate")
async def escalate_session(
    session_id: str,
    request: Optional[EscalationRequest] = None,
    orchestrator: DetectionRiskOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """
    Regenerate at the next humanization intensity and analyze the result.

    Raises:
        AttemptsExhaustedError / AlreadyMaximalError: 409 when escalation is no longer possible
        RateLimitError: 429 while the regeneration cooldown runs
        GenerationError: 502 when the generator failed
    """
    client_attempts = request.attempt_count if request else None
    outcome = await orchestrator.request_escalation(session_id, client_attempt_count=client_attempts)
    return _outcome_response(outcome, session_id)


@router.post("/{session_id}/retry-analysis")
async def retry_analysis(
    session_id: str,
    orchestrator: DetectionRiskOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Re-run the detection check after it was unavailable."""
    outcome = await orchestrator.retry_analysis(session_id)
    return _outcome_response(outcome, session_id)


@router.post("/{session_id}/accept")
async def accept_session(
    session_id: str,
    request: Optional[AcceptRequest] = None,
    orchestrator: DetectionRiskOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Keep the current draft and close the session."""
    snapshot = orchestrator.accept(session_id, override=bool(request and request.override))
    return JSONResponse({"message": "Session accepted", "snapshot": snapshot.to_dict()})


@router.delete("/{session_id}")
async def dismiss_session(
    session_id: str,
    orchestrator: DetectionRiskOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Release a session. Unknown sessions are ignored."""
    orchestrator.dismiss(session_id)
    return JSONResponse({"message": "Session dismissed", "session_id": session_id})
