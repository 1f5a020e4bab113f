import threading
from typing import Optional

from app.core.settings import Settings
from app.core.state import RegenerationCooldown
from app.core.memory_manager import SessionArchive
from app.services.generation import OpenAIProposalGenerator
from app.services.orchestrator import DetectionRiskOrchestrator
from app.services.scorer import OpenAIDetectionScorer

# Global instances with dependency injection and thread safety
_settings: Optional[Settings] = None
_archive: Optional[SessionArchive] = None
_orchestrator: Optional[DetectionRiskOrchestrator] = None
_global_lock = threading.RLock()  # Use RLock to allow reentrant calls


def get_settings() -> Settings:
    """
    Get application settings instance.

    Returns:
        Settings instance with current configuration
    """
    global _settings
    if _settings is None:
        with _global_lock:
            if _settings is None:  # Double-checked locking
                _settings = Settings.load()
    return _settings


def get_archive() -> SessionArchive:
    global _archive
    if _archive is None:
        with _global_lock:
            if _archive is None:
                _archive = SessionArchive()
    return _archive


def get_orchestrator() -> DetectionRiskOrchestrator:
    """
    Get or create the orchestrator instance (singleton).

    Returns:
        DetectionRiskOrchestrator wired with the OpenAI reference scorer and generator

    Raises:
        ConfigurationError: If settings cannot be loaded
    """
    global _orchestrator
    if _orchestrator is None:
        with _global_lock:
            if _orchestrator is None:  # Double-checked locking
                settings = get_settings()
                _orchestrator = DetectionRiskOrchestrator(
                    scorer=OpenAIDetectionScorer(
                        settings.openai_api_key,
                        model=settings.scorer_model,
                        timeout_seconds=settings.scorer_timeout_seconds,
                    ),
                    generator=OpenAIProposalGenerator(settings.openai_api_key, model=settings.openai_model),
                    settings=settings,
                    cooldown=RegenerationCooldown(settings.regeneration_cooldown_seconds),
                    snapshot_sink=get_archive(),
                )
    return _orchestrator


def reset_globals():
    """Reset global instances (useful for reloading settings)"""
    global _settings, _archive, _orchestrator
    with _global_lock:
        _settings = None
        _archive = None
        _orchestrator = None
