"""
CAPTCHA Image Preprocessor
==========================

Converts raw image bytes into the normalized tensor the classifier was
trained on:

1. Decode any OpenCV-supported encoding (PNG, JPEG, BMP, WebP, TIFF, ...)
   directly to single-channel grayscale
2. Resize to exactly (height, width) from the model metadata using
   bilinear interpolation (``cv2.INTER_LINEAR``); aspect ratio is not kept
3. Normalize every pixel as ``(pixel / 255 - mean) * (1 / std)``
4. Reshape to ``[1, 1, height, width]`` float32

Decode or resize failures are logged and reported as ``None``.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from ..core.metadata import ModelMetadata

logger = logging.getLogger(__name__)


class CaptchaPreprocessor:
    """
    Stateless bytes-to-tensor converter; safe to call from many threads.

    Example:
        preprocessor = CaptchaPreprocessor.from_metadata(metadata)
        tensor = preprocessor.preprocess(png_bytes)
        if tensor is None:
            ...  # undecodable image
    """

    def __init__(
        self,
        height: int,
        width: int,
        mean: float,
        std: float,
        interpolation: int = cv2.INTER_LINEAR,
    ):
        self.height = height
        self.width = width
        self.mean = np.float32(mean)
        self.inv_std = np.float32(1.0 / std)
        self.interpolation = interpolation

    @classmethod
    def from_metadata(cls, metadata: ModelMetadata) -> 'CaptchaPreprocessor':
        return cls(
            height=metadata.height,
            width=metadata.width,
            mean=metadata.mean,
            std=metadata.std,
        )

    @property
    def tensor_shape(self):
        return (1, 1, self.height, self.width)

    def decode_grayscale(self, image_bytes: bytes) -> np.ndarray:
        """
        Decode encoded image bytes to a 2-D uint8 array.

        Raises:
            ValueError: If the buffer is empty or cannot be decoded
        """
        if not image_bytes:
            raise ValueError("empty image buffer")

        buffer = np.frombuffer(image_bytes, dtype=np.uint8)
        img = cv2.imdecode(buffer, cv2.IMREAD_GRAYSCALE)
        if img is None:
            raise ValueError("unsupported or corrupt image data")
        return img

    def normalize(self, gray: np.ndarray) -> np.ndarray:
        """Resize a grayscale image and apply training-time normalization."""
        if gray.shape[:2] != (self.height, self.width):
            gray = cv2.resize(gray, (self.width, self.height), interpolation=self.interpolation)

        normalized = (gray.astype(np.float32) / np.float32(255.0) - self.mean) * self.inv_std
        return normalized.reshape(self.tensor_shape).astype(np.float32, copy=False)

    def preprocess(self, image_bytes: bytes) -> Optional[np.ndarray]:
        """
        Preprocess image bytes for model input.

        Args:
            image_bytes: Raw encoded image

        Returns:
            Tensor of shape [1, 1, H, W], or None if the image could not be processed
        """
        try:
            gray = self.decode_grayscale(image_bytes)
            return self.normalize(gray)
        except (ValueError, cv2.error) as e:
            logger.error(f"Error preprocessing image: {e}")
            return None
