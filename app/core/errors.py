"""Standardized JSON error responses for orchestrator exceptions."""
from typing import Dict, Any
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
import json
from fastapi.responses import JSONResponse

from app.core.exceptions import OrchestratorException


def _make_json_safe(obj: Any) -> Any:
    """Recursively convert error details (enums, value objects, exceptions) to JSON-safe forms."""
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return _make_json_safe(asdict(obj))
    if isinstance(obj, BaseException):
        return str(obj)
    if isinstance(obj, dict):
        return {str(_make_json_safe(k)): _make_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [_make_json_safe(v) for v in obj]
    try:
        json.dumps(obj)
        return obj
    except (TypeError, ValueError):
        return repr(obj)


def create_error_response(message: str, status_code: int = 500, error_code: str = None, details: Dict[str, Any] = None) -> JSONResponse:
    """Create a standardized error response (always JSON-serializable)."""
    error_data = {
        "error": message,
        "status_code": status_code,
        "error_code": error_code or f"ERROR_{status_code}",
        "timestamp": datetime.now().isoformat(),
        "details": details or {}
    }
    return JSONResponse(_make_json_safe(error_data), status_code=status_code)


def error_response_from_exception(exc: OrchestratorException) -> JSONResponse:
    """Render an orchestrator exception with its own status and error code."""
    return create_error_response(
        exc.message,
        status_code=exc.status_code,
        error_code=exc.error_code,
        details=exc.details,
    )
