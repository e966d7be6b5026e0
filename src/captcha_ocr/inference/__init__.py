"""
CAPTCHA OCR Inference Module
============================

ONNX Runtime model wrapper and the solving engine built on top of it.

Usage:
    from captcha_ocr.inference import CaptchaSolver

    solver = CaptchaSolver(use_gpu=False)
    solver.initialize("models/captcha_model.onnx", "models/captcha_model_metadata.json")
    result = solver.solve(image_bytes)
"""

from .onnx_inference import ONNXCaptchaModel
from .solver import CaptchaSolver, SolverState

__all__ = [
    'ONNXCaptchaModel',
    'CaptchaSolver',
    'SolverState',
]
