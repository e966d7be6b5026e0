"""Result records produced by the solving engine."""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class DecodedCode:
    """A validated candidate: 4 charset characters and their mean score."""
    code: str
    confidence: float


@dataclass(frozen=True)
class SolveResult:
    """
    Outcome of a single solve call.

    Use ``SolveResult.solved`` / ``SolveResult.failed`` rather than the
    constructor: a failure never carries a code or a confidence.
    """
    code: Optional[str]
    success: bool
    confidence: float
    solve_time_ms: float

    method: str = "ONNX"

    @classmethod
    def solved(cls, decoded: DecodedCode, solve_time_ms: float) -> 'SolveResult':
        return cls(
            code=decoded.code,
            success=True,
            confidence=decoded.confidence,
            solve_time_ms=solve_time_ms,
        )

    @classmethod
    def failed(cls, solve_time_ms: float) -> 'SolveResult':
        return cls(code=None, success=False, confidence=0.0, solve_time_ms=solve_time_ms)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "code": self.code,
            "confidence": self.confidence,
            "method": self.method,
            "solveTimeMs": self.solve_time_ms,
        }


@dataclass(frozen=True)
class BatchItemResult:
    """A batch entry's result, tagged with the caller's identifier."""
    id: Optional[str]
    result: SolveResult

    @property
    def success(self) -> bool:
        return self.result.success

    @property
    def code(self) -> Optional[str]:
        return self.result.code

    @property
    def confidence(self) -> float:
        return self.result.confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "success": self.result.success,
            "code": self.result.code,
            "confidence": self.result.confidence,
        }
