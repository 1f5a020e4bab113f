"""
Environment variable validation and configuration.

This module validates environment variables on startup and provides
clear error messages for missing or invalid configuration.
"""
from __future__ import annotations

import os
from typing import Callable, List, Dict, Optional, Any

from app.core.exceptions import ConfigurationError, ValidationError
from app.core.intensity import IntensityLevel


class EnvVar:
    """Represents an environment variable with validation rules."""

    def __init__(
        self,
        name: str,
        required: bool = True,
        default: Optional[str] = None,
        validator: Optional[Callable[[str], Any]] = None,
        description: Optional[str] = None
    ):
        """
        Initialize an environment variable definition.

        Args:
            name: Environment variable name
            required: Whether the variable is required
            default: Default value if not set
            validator: Optional validation function
            description: Human-readable description
        """
        self.name = name
        self.required = required
        self.default = default
        self.validator = validator
        self.description = description

    def get_value(self) -> Optional[str]:
        """Get the environment variable value."""
        value = os.getenv(self.name, self.default)
        if self.required and not value:
            raise ConfigurationError(
                f"Required environment variable '{self.name}' is not set",
                config_key=self.name,
                details={"description": self.description}
            )
        if value and self.validator:
            try:
                self.validator(value)
            except (TypeError, ValueError, ValidationError) as e:
                raise ConfigurationError(
                    f"Invalid value for environment variable '{self.name}': {str(e)}",
                    config_key=self.name,
                    details={"description": self.description}
                )
        return value


def _positive_int(value: str) -> None:
    if int(value) < 1:
        raise ValueError("must be a positive integer")


def _non_negative_int(value: str) -> None:
    if int(value) < 0:
        raise ValueError("must not be negative")


def _positive_float(value: str) -> None:
    if float(value) <= 0:
        raise ValueError("must be positive")


ENV_VARS: Dict[str, EnvVar] = {
    "OPENAI_API_KEY": EnvVar(
        "OPENAI_API_KEY",
        required=False,
        description="OpenAI API key for the reference scorer and generator"
    ),
    "DETECTION_THRESHOLD": EnvVar(
        "DETECTION_THRESHOLD",
        required=False,
        validator=float,
        description="Detection score at or above which text is unsafe (clamped to 140-220)"
    ),
    "MAX_REGENERATION_ATTEMPTS": EnvVar(
        "MAX_REGENERATION_ATTEMPTS",
        required=False,
        validator=_positive_int,
        description="Maximum escalation attempts per session"
    ),
    "DEFAULT_HUMANIZATION_INTENSITY": EnvVar(
        "DEFAULT_HUMANIZATION_INTENSITY",
        required=False,
        validator=IntensityLevel.parse,
        description="Baseline intensity for new sessions (off/light/medium/heavy)"
    ),
    "REGENERATION_COOLDOWN_SECONDS": EnvVar(
        "REGENERATION_COOLDOWN_SECONDS",
        required=False,
        validator=_non_negative_int,
        description="Seconds between successful regenerations (0 disables)"
    ),
    "SCORER_TIMEOUT_SECONDS": EnvVar(
        "SCORER_TIMEOUT_SECONDS",
        required=False,
        validator=_positive_float,
        description="Timeout for one detection scorer call"
    ),
    "DEBUG": EnvVar(
        "DEBUG",
        required=False,
        default="false",
        description="Enable debug logging (true/false)"
    ),
}


def validate_required_env_vars() -> Dict[str, Optional[str]]:
    """
    Validate all environment variables on startup.

    Returns:
        Dictionary of validated environment variables

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    validated: Dict[str, Optional[str]] = {}
    errors: List[str] = []

    for name, env_var in ENV_VARS.items():
        try:
            validated[name] = env_var.get_value()
        except ConfigurationError as e:
            errors.append(str(e))

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            details={"errors": errors}
        )

    return validated


def get_env_summary() -> Dict[str, Any]:
    """
    Get a summary of environment variable configuration (without sensitive values).

    Returns:
        Dictionary with configuration summary
    """
    return {
        "OPENAI_API_KEY": "set" if os.getenv("OPENAI_API_KEY") else "not set",
        "DETECTION_THRESHOLD": os.getenv("DETECTION_THRESHOLD", "default"),
        "MAX_REGENERATION_ATTEMPTS": os.getenv("MAX_REGENERATION_ATTEMPTS", "default"),
        "DEFAULT_HUMANIZATION_INTENSITY": os.getenv("DEFAULT_HUMANIZATION_INTENSITY", "default"),
        "REGENERATION_COOLDOWN_SECONDS": os.getenv("REGENERATION_COOLDOWN_SECONDS", "default"),
        "DEBUG": os.getenv("DEBUG", "false"),
        "VERCEL": "true" if os.getenv("VERCEL") else "false",
    }
