"""
Settings API routes.

Read-only view of the detection policy the orchestrator applies.
"""
from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.dependencies import get_settings
from app.core.intensity import all_levels
from app.core.risk import THRESHOLD_MAX, THRESHOLD_MIN
from app.core.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
async def get_settings_endpoint(settings: Settings = Depends(get_settings)) -> JSONResponse:
    """
    Get current detection settings.

    Returns:
        JSONResponse with current settings including:
        - Detection threshold and its allowed range
        - Attempt cap and regeneration cooldown
        - Default and available humanization intensities
    """
    settings_dict: Dict[str, Any] = {
        "detectionThreshold": settings.detection_threshold,
        "thresholdRange": [THRESHOLD_MIN, THRESHOLD_MAX],
        "maxAttempts": settings.max_attempts,
        "regenerationCooldownSeconds": settings.regeneration_cooldown_seconds,
        "defaultIntensity": settings.default_intensity.value,
        "intensityLevels": [
            {"value": level.value, "description": level.rate_description}
            for level in all_levels()
        ],
        "openaiApiKey": "sk-***" if settings.openai_api_key else "",
        "scorerModel": settings.scorer_model,
    }
    return JSONResponse(settings_dict)
