"""
CAPTCHA OCR Utilities
=====================

Execution backend selection for ONNX Runtime.
"""

from .gpu_utils import (
    ACCELERATED_PROVIDERS,
    CPU_PROVIDER,
    BackendStatus,
    ExecutionBackendSelector,
    SessionAttempt,
    SessionSettings,
    default_provider_preference,
    normalize_preference,
    to_ort_name,
    to_short_name,
)

__all__ = [
    'ACCELERATED_PROVIDERS',
    'CPU_PROVIDER',
    'BackendStatus',
    'ExecutionBackendSelector',
    'SessionAttempt',
    'SessionSettings',
    'default_provider_preference',
    'normalize_preference',
    'to_ort_name',
    'to_short_name',
]
