#!/usr/bin/env python3
"""
ONNX Inference for CAPTCHA Models
=================================

Thin wrapper around an ONNX Runtime session for the 4-head CAPTCHA
classifier:

- one input of shape [1, 1, H, W] (float32, normalized grayscale)
- one output per code position, each a score vector over the charset

The session is read-only once created and may be shared across threads;
ONNX Runtime releases the GIL during ``run``.

Usage:
    from captcha_ocr.inference.onnx_inference import ONNXCaptchaModel

    model = ONNXCaptchaModel(session)
    model.warm_up(height=50, width=200)
    outputs = model.predict(tensor)   # 4 one-dimensional vectors
"""

import logging
import time
from typing import Any, List

import numpy as np

from ..core.errors import ModelLoadError
from ..core.metadata import CODE_LENGTH

logger = logging.getLogger(__name__)


class ONNXCaptchaModel:
    """
    ONNX-based per-position character classifier.

    Example:
        model = ONNXCaptchaModel(session, model_path="model.onnx")
        model.warm_up(50, 200)
        scores = model.predict(tensor)
    """

    def __init__(self, session: Any, model_path: str = "<memory>"):
        """
        Args:
            session: ONNX Runtime ``InferenceSession`` (or compatible object)
            model_path: Model location, for diagnostics only

        Raises:
            ModelLoadError: If the graph does not expose one output per position
        """
        self.session = session
        self.model_path = model_path

        inputs = session.get_inputs()
        if not inputs:
            raise ModelLoadError("model declares no inputs", model_path=model_path)
        input_info = inputs[0]
        self.input_name = input_info.name
        self.input_shape = input_info.shape

        self.output_names = [o.name for o in session.get_outputs()]
        if len(self.output_names) < CODE_LENGTH:
            raise ModelLoadError(
                f"expected at least {CODE_LENGTH} outputs, model has {len(self.output_names)}",
                model_path=model_path,
            )
        # Only the first CODE_LENGTH outputs are character heads
        self.position_outputs = self.output_names[:CODE_LENGTH]

        logger.info(f"ONNX model loaded: {model_path}")
        logger.info(f"  Input: {self.input_name} {self.input_shape}")
        logger.info(f"  Outputs: {self.position_outputs}")

    def warm_up(self, height: int, width: int) -> float:
        """
        Run one throwaway inference on zeros to trigger lazy compilation.

        Returns:
            Warm-up duration in milliseconds

        Raises:
            ModelLoadError: If the warm-up inference fails
        """
        dummy = np.zeros((1, 1, height, width), dtype=np.float32)
        start = time.perf_counter()
        try:
            outputs = self.predict(dummy)
        except Exception as e:
            raise ModelLoadError(f"warm-up inference failed: {e}", model_path=self.model_path) from e

        if len(outputs) != CODE_LENGTH:
            raise ModelLoadError(
                f"warm-up produced {len(outputs)} outputs instead of {CODE_LENGTH}",
                model_path=self.model_path,
            )

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.info(f"Warm-up inference completed in {elapsed_ms:.1f} ms")
        return elapsed_ms

    def predict(self, tensor: np.ndarray) -> List[np.ndarray]:
        """
        Run inference on one preprocessed tensor.

        Args:
            tensor: float32 array of shape [1, 1, H, W]

        Returns:
            One flattened score vector per code position
        """
        outputs = self.session.run(self.position_outputs, {self.input_name: tensor})
        return [np.asarray(o, dtype=np.float32).reshape(-1) for o in outputs]

    def get_model_info(self) -> dict:
        """Get model metadata."""
        return {
            'model_path': self.model_path,
            'input_name': self.input_name,
            'input_shape': self.input_shape,
            'output_names': self.output_names,
        }
