"""
Application settings.

Settings are resolved once from three layers: built-in defaults, an optional
YAML file (config/orchestrator.yaml or ORCHESTRATOR_CONFIG_FILE), and
environment variables, later layers winning. The resulting object is shared
read-only by every session.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from app.core.exceptions import ConfigurationError, ValidationError
from app.core.intensity import IntensityLevel
from app.core.paths import get_config_dir
from app.core.risk import DEFAULT_THRESHOLD, clamp_threshold

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_COOLDOWN_SECONDS = 120

# env var -> settings field
_ENV_FIELDS = {
    "DETECTION_THRESHOLD": "detection_threshold",
    "MAX_REGENERATION_ATTEMPTS": "max_attempts",
    "DEFAULT_HUMANIZATION_INTENSITY": "default_intensity",
    "REGENERATION_COOLDOWN_SECONDS": "regeneration_cooldown_seconds",
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_MODEL": "openai_model",
    "SCORER_MODEL": "scorer_model",
    "SCORER_TIMEOUT_SECONDS": "scorer_timeout_seconds",
}


def _config_file_path() -> Path:
    override = os.getenv("ORCHESTRATOR_CONFIG_FILE")
    if override:
        return Path(override)
    return get_config_dir() / "orchestrator.yaml"


def load_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the YAML settings overlay; a missing file yields an empty overlay."""
    path = path or _config_file_path()
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed to load settings file {path}: {e}",
            config_key="ORCHESTRATOR_CONFIG_FILE"
        )
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Settings file {path} must contain a mapping",
            config_key="ORCHESTRATOR_CONFIG_FILE"
        )
    return data


@dataclass(frozen=True)
class Settings:
    detection_threshold: float = DEFAULT_THRESHOLD
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    default_intensity: IntensityLevel = IntensityLevel.MEDIUM
    regeneration_cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    scorer_model: str = "gpt-4o-mini"
    scorer_timeout_seconds: float = 15.0

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> "Settings":
        """
        Build settings from raw (string or typed) values.

        Raises:
            ConfigurationError: If a value cannot be converted or is out of range
        """
        raw = {k: v for k, v in values.items() if k in cls.__dataclass_fields__ and v not in (None, "")}
        try:
            threshold = float(raw.get("detection_threshold", DEFAULT_THRESHOLD))
            max_attempts = int(raw.get("max_attempts", DEFAULT_MAX_ATTEMPTS))
            cooldown = int(raw.get("regeneration_cooldown_seconds", DEFAULT_COOLDOWN_SECONDS))
            timeout = float(raw.get("scorer_timeout_seconds", 15.0))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}")

        if max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1", config_key="MAX_REGENERATION_ATTEMPTS")
        if cooldown < 0:
            raise ConfigurationError(
                "regeneration_cooldown_seconds cannot be negative",
                config_key="REGENERATION_COOLDOWN_SECONDS"
            )
        if timeout <= 0:
            raise ConfigurationError("scorer_timeout_seconds must be positive", config_key="SCORER_TIMEOUT_SECONDS")

        clamped = clamp_threshold(threshold)
        if clamped != threshold:
            logger.warning(f"Detection threshold {threshold} outside 140-220, using {clamped}")

        try:
            intensity = IntensityLevel.parse(raw.get("default_intensity", IntensityLevel.MEDIUM))
        except ValidationError as e:
            raise ConfigurationError(e.message, config_key="DEFAULT_HUMANIZATION_INTENSITY")

        return cls(
            detection_threshold=clamped,
            max_attempts=max_attempts,
            default_intensity=intensity,
            regeneration_cooldown_seconds=cooldown,
            openai_api_key=raw.get("openai_api_key"),
            openai_model=raw.get("openai_model", cls.openai_model),
            scorer_model=raw.get("scorer_model", cls.scorer_model),
            scorer_timeout_seconds=timeout,
        )

    @classmethod
    def load(cls) -> "Settings":
        """Resolve settings from defaults, the YAML overlay and the environment."""
        values: Dict[str, Any] = dict(load_config_file())
        for env_name, field_name in _ENV_FIELDS.items():
            env_value = os.getenv(env_name)
            if env_value:
                values[field_name] = env_value
        return cls.from_mapping(values)

    def public_dict(self) -> Dict[str, Any]:
        """Settings without secrets, for API responses and logs."""
        data = asdict(self)
        data["default_intensity"] = self.default_intensity.value
        data["openai_api_key"] = "sk-***" if self.openai_api_key else ""
        return data
