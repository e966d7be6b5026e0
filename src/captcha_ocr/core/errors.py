"""
Solver Exceptions
=================

Structured exceptions raised at initialization time. Per-request problems
never surface as exceptions; they become failed ``SolveResult`` records.
"""

from typing import Any, Dict, Optional


class CaptchaSolverError(Exception):
    """
    Base exception for solver errors.

    Provides structured error information with error codes for programmatic handling.
    """

    def __init__(self, message: str, error_code: str = "SOLVER_ERROR", context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class MetadataError(CaptchaSolverError):
    """Raised when the model metadata document is missing or malformed."""

    def __init__(self, message: str, path: Optional[str] = None, field: Optional[str] = None):
        super().__init__(
            message=f"Metadata error: {message}",
            error_code="METADATA_ERROR",
            context={"path": path, "field": field}
        )
        self.path = path
        self.field = field


class ModelLoadError(CaptchaSolverError):
    """Raised when the ONNX model cannot be loaded or warmed up."""

    def __init__(self, message: str, model_path: Optional[str] = None):
        super().__init__(
            message=f"Model load error: {message}",
            error_code="MODEL_LOAD_ERROR",
            context={"model_path": model_path}
        )
        self.model_path = model_path


class BackendInitializationError(CaptchaSolverError):
    """Raised when not even the CPU execution provider can create a session."""

    def __init__(self, message: str, providers: Optional[list] = None):
        super().__init__(
            message=f"Backend initialization failed: {message}",
            error_code="BACKEND_INIT_ERROR",
            context={"providers": providers or []}
        )
        self.providers = providers or []


class SolverInitializationError(CaptchaSolverError):
    """Raised when the solving engine fails to reach the ready state."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(
            message=f"Solver initialization failed: {message}",
            error_code="SOLVER_INIT_ERROR",
            context={"cause": type(cause).__name__ if cause else None}
        )


class SolverNotReadyError(CaptchaSolverError):
    """Raised when a solve is requested before initialization completed."""

    def __init__(self, state: str):
        super().__init__(
            message=f"Solver is not ready (state: {state})",
            error_code="SOLVER_NOT_READY",
            context={"state": state}
        )
        self.state = state
