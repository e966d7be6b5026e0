"""
CAPTCHA Preprocessing Module
============================

Bytes-to-tensor conversion matching training-time normalization.

Usage:
    from captcha_ocr.preprocessing import CaptchaPreprocessor

    preprocessor = CaptchaPreprocessor.from_metadata(metadata)
    tensor = preprocessor.preprocess(image_bytes)
"""

from .captcha_preprocessor import CaptchaPreprocessor

__all__ = [
    'CaptchaPreprocessor',
]
