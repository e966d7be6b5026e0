"""
CAPTCHA OCR Core Module
=======================

Model metadata, result types, decoding/validation and statistics.
"""

from .errors import (
    CaptchaSolverError,
    MetadataError,
    ModelLoadError,
    BackendInitializationError,
    SolverInitializationError,
    SolverNotReadyError,
)
from .metadata import (
    CODE_LENGTH,
    ModelMetadata,
    load_metadata,
)
from .results import (
    DecodedCode,
    SolveResult,
    BatchItemResult,
)
from .decoding import (
    CaptchaDecoder,
    is_valid_code,
    softmax,
)
from .stats import (
    SolverStats,
    StatsAggregator,
)

__all__ = [
    # Errors
    "CaptchaSolverError",
    "MetadataError",
    "ModelLoadError",
    "BackendInitializationError",
    "SolverInitializationError",
    "SolverNotReadyError",
    # Metadata
    "CODE_LENGTH",
    "ModelMetadata",
    "load_metadata",
    # Results
    "DecodedCode",
    "SolveResult",
    "BatchItemResult",
    # Decoding
    "CaptchaDecoder",
    "is_valid_code",
    "softmax",
    # Statistics
    "SolverStats",
    "StatsAggregator",
]
