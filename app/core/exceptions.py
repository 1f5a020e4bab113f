"""
Custom exception classes for the detection-risk orchestrator.

This module provides structured exception handling with proper error codes
and messages for better API error responses. Scorer and generation failures
are recoverable at the orchestrator boundary; escalation errors are expected
terminal conditions; invariant errors are programming errors.
"""
from __future__ import annotations

from typing import Optional, Dict, Any


class OrchestratorException(Exception):
    """Base exception class for all orchestrator-related errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize an orchestrator exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code for API responses
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ValidationError(OrchestratorException):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details={"field": field, **(details or {})}
        )


class NotFoundError(OrchestratorException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource": resource, "identifier": identifier, **(details or {})}
        )


class ConfigurationError(OrchestratorException):
    """Raised when there's a configuration issue."""

    def __init__(self, message: str, config_key: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            status_code=500,
            details={"config_key": config_key, **(details or {})}
        )


class ExternalServiceError(OrchestratorException):
    """Raised when an external service call fails."""

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int = 502,
        error_code: str = "EXTERNAL_SERVICE_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"{service} error: {message}",
            error_code=error_code,
            status_code=status_code,
            details={"service": service, **(details or {})}
        )


class AnalysisError(ExternalServiceError):
    """
    Raised when the detection scorer cannot produce a result.

    Covers an unreachable service, a timeout, or a malformed response.
    A failed analysis is never a risk classification.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            service="detection_scorer",
            message=message,
            error_code="ANALYSIS_ERROR",
            details=details
        )


class GenerationError(ExternalServiceError):
    """Raised when the generation capability fails to produce text."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            service="generator",
            message=message,
            error_code="GENERATION_ERROR",
            details=details
        )


class EscalationError(OrchestratorException):
    """Base class for refused escalation requests."""

    def __init__(self, message: str, error_code: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=409,
            details=details or {}
        )


class AlreadyMaximalError(EscalationError):
    """Raised when escalating from the highest humanization intensity."""

    def __init__(self, level: str = "heavy", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Already at maximum intensity ({level}). Consider manual editing.",
            error_code="ALREADY_MAXIMAL",
            details={"intensity": level, **(details or {})}
        )


class AttemptsExhaustedError(EscalationError):
    """Raised when escalation is requested after the attempt cap is reached."""

    def __init__(self, max_attempts: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Maximum regeneration attempts ({max_attempts}) reached. Consider manual editing.",
            error_code="ATTEMPTS_EXHAUSTED",
            details={"max_attempts": max_attempts, **(details or {})}
        )


class SessionStateError(OrchestratorException):
    """Raised when an operation is not valid in the session's current state."""

    def __init__(self, message: str, state: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="INVALID_SESSION_STATE",
            status_code=409,
            details={"state": state, **(details or {})}
        )


class SessionInvariantError(AssertionError):
    """
    Raised when session state would break one of its invariants.

    This signals a caller bypassing the orchestrator, not a user-facing
    condition, so it is deliberately not an OrchestratorException.
    """


class RateLimitError(OrchestratorException):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="RATE_LIMIT_ERROR",
            status_code=429,
            details={"retry_after": retry_after, **(details or {})}
        )
