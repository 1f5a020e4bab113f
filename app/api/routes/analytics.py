"""
Analytics API routes.

Read-only summaries over closed review sessions: how many were accepted,
how often a detection warning was overridden, and the latest scores.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.dependencies import get_archive, get_orchestrator
from app.core.memory_manager import SessionArchive
from app.services.orchestrator import DetectionRiskOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/summary")
async def get_analytics_summary(
    client_id: Optional[str] = None,
    archive: SessionArchive = Depends(get_archive),
    orchestrator: DetectionRiskOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """
    Get a detection summary for one client.

    Returns:
        JSONResponse with:
        - Closed session count and override count
        - Override rate and last recorded score
        - Up to five most recent session snapshots
        - Number of sessions still open
    """
    summary: Dict[str, Any] = archive.get_summary(client_id)
    total = summary["total_sessions"]
    summary["override_rate"] = round(summary["override_count"] / total, 3) if total else 0.0
    summary["active_sessions"] = orchestrator.active_session_count
    logger.debug(f"Analytics summary for {client_id or 'anonymous'}: {total} sessions")
    return JSONResponse(summary)


@router.get("/sessions")
async def list_closed_sessions(
    client_id: Optional[str] = None,
    limit: int = 50,
    archive: SessionArchive = Depends(get_archive),
) -> JSONResponse:
    """List archived snapshots for a client, newest first."""
    snapshots = archive.get_snapshots(client_id)
    limit = max(1, min(limit, 200))
    return JSONResponse({
        "sessions": [s.to_dict() for s in reversed(snapshots[-limit:])],
        "count": len(snapshots),
    })
