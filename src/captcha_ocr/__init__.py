"""
CAPTCHA OCR Service
===================

Decodes 4-character CAPTCHA images with a pre-trained ONNX classifier.

Package Structure:
    captcha_ocr/
    ├── core/           # Metadata, results, decoding, statistics
    ├── preprocessing/  # Bytes-to-tensor conversion
    ├── inference/      # ONNX model wrapper and solving engine
    ├── utils/          # Execution backend selection
    └── web/            # FastAPI HTTP API

Quick Start:
    from captcha_ocr import CaptchaSolver

    solver = CaptchaSolver(use_gpu=False)
    solver.initialize("models/captcha_model.onnx", "models/captcha_model_metadata.json")
    result = solver.solve(open("captcha.png", "rb").read())
    print(result.code, result.confidence)

Version: 1.0.0
"""

__version__ = "1.0.0"

# Core exports (lightweight, always available)
from .core import (
    CODE_LENGTH,
    ModelMetadata,
    load_metadata,
    SolveResult,
    BatchItemResult,
    SolverStats,
    CaptchaSolverError,
    SolverInitializationError,
    SolverNotReadyError,
)

__all__ = [
    "__version__",
    "CODE_LENGTH",
    "ModelMetadata",
    "load_metadata",
    "SolveResult",
    "BatchItemResult",
    "SolverStats",
    "CaptchaSolverError",
    "SolverInitializationError",
    "SolverNotReadyError",
]


# Lazy imports for inference (heavier dependencies)
def __getattr__(name: str):
    """Lazy import for inference modules."""
    if name == "CaptchaSolver":
        from .inference.solver import CaptchaSolver
        return CaptchaSolver
    elif name == "create_app":
        from .web.app import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
