#!/usr/bin/env python3
"""
GPU Utilities for the CAPTCHA Solver
====================================

Execution provider negotiation for ONNX Runtime with ordered fallback.

Supports:
- NVIDIA CUDA / TensorRT
- DirectML (Windows, AMD/NVIDIA/Intel GPUs)
- AMD ROCm
- Apple CoreML
- Fallback to CPU

The selector tries the full preference list first (accelerated providers
followed by CPU). If session creation fails because drivers or runtime
libraries are missing, the failure is logged and a CPU-only session is
created instead. Only a failing CPU-only attempt is fatal.

Usage:
    from captcha_ocr.utils.gpu_utils import ExecutionBackendSelector

    selector = ExecutionBackendSelector(use_gpu=True)
    session, status = selector.create_session("models/captcha_model.onnx")
    print(status.provider, status.available)
"""

import sys
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..core.errors import BackendInitializationError

logger = logging.getLogger(__name__)

CPU_PROVIDER = "cpu"

# Short provider names <-> ONNX Runtime execution provider names
ORT_PROVIDER_NAMES: Dict[str, str] = {
    "cpu": "CPUExecutionProvider",
    "cuda": "CUDAExecutionProvider",
    "tensorrt": "TensorrtExecutionProvider",
    "dml": "DmlExecutionProvider",
    "rocm": "ROCMExecutionProvider",
    "coreml": "CoreMLExecutionProvider",
    "openvino": "OpenVINOExecutionProvider",
}
SHORT_PROVIDER_NAMES: Dict[str, str] = {v: k for k, v in ORT_PROVIDER_NAMES.items()}

# Providers that count as hardware acceleration
ACCELERATED_PROVIDERS = frozenset({"cuda", "dml", "tensorrt", "rocm", "coreml"})


def to_ort_name(provider: str) -> str:
    """Map a short provider name ('cuda') to its ONNX Runtime name."""
    return ORT_PROVIDER_NAMES.get(provider.lower(), provider)


def to_short_name(provider: str) -> str:
    """Map an ONNX Runtime provider name to its short name."""
    if provider in SHORT_PROVIDER_NAMES:
        return SHORT_PROVIDER_NAMES[provider]
    name = provider.lower()
    if name.endswith("executionprovider"):
        name = name[:-len("executionprovider")]
    return name


def default_provider_preference(platform: Optional[str] = None) -> List[str]:
    """
    Platform-specific provider preference, CPU always last.

    Windows tries DirectML first (any DX12 GPU), then CUDA. macOS uses
    CoreML. Everything else tries CUDA.
    """
    platform = platform or sys.platform
    if platform == "win32":
        return ["dml", "cuda", CPU_PROVIDER]
    if platform == "darwin":
        return ["coreml", CPU_PROVIDER]
    return ["cuda", CPU_PROVIDER]


def normalize_preference(providers: Sequence[str]) -> List[str]:
    """Lower-case, de-duplicate and make sure CPU is the final entry."""
    ordered: List[str] = []
    for provider in providers:
        name = to_short_name(provider.strip())
        if name and name not in ordered and name != CPU_PROVIDER:
            ordered.append(name)
    ordered.append(CPU_PROVIDER)
    return ordered


@dataclass(frozen=True)
class BackendStatus:
    """Execution backend diagnostics, fixed once initialization completes."""
    enabled: bool = False
    available: bool = False
    provider: Optional[str] = None
    available_providers: Tuple[str, ...] = ()
    requested_providers: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "available": self.available,
            "provider": self.provider,
            "availableProviders": list(self.available_providers),
            "requestedProviders": list(self.requested_providers),
        }


@dataclass
class SessionAttempt:
    """Outcome of one session-creation attempt: a session or an error."""
    providers: List[str]
    session: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.session is not None


@dataclass
class SessionSettings:
    """ONNX Runtime session options."""
    inter_op_threads: int = 4
    intra_op_threads: int = 4
    parallel_execution: bool = True
    enable_cpu_mem_arena: bool = True
    enable_mem_pattern: bool = True


def _import_ort():
    try:
        import onnxruntime as ort
    except ImportError:
        raise ImportError(
            "ONNX Runtime not installed. Install with:\n"
            "  pip install onnxruntime       # CPU only\n"
            "  pip install onnxruntime-gpu   # With CUDA support"
        )
    return ort


def ort_available_providers() -> List[str]:
    """Providers compiled into the installed ONNX Runtime build."""
    return list(_import_ort().get_available_providers())


def ort_session_factory(model_path: str, providers: List[str], settings: SessionSettings):
    """Create an ``onnxruntime.InferenceSession`` for the given short provider names."""
    ort = _import_ort()

    sess_options = ort.SessionOptions()
    sess_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
    sess_options.enable_cpu_mem_arena = settings.enable_cpu_mem_arena
    sess_options.enable_mem_pattern = settings.enable_mem_pattern
    sess_options.inter_op_num_threads = settings.inter_op_threads
    sess_options.intra_op_num_threads = settings.intra_op_threads
    if settings.parallel_execution:
        sess_options.execution_mode = ort.ExecutionMode.ORT_PARALLEL

    ort_providers = [to_ort_name(p) for p in providers]
    return ort.InferenceSession(model_path, sess_options=sess_options, providers=ort_providers)


class ExecutionBackendSelector:
    """
    Ordered execution-provider negotiation with CPU fallback.

    Example:
        selector = ExecutionBackendSelector(use_gpu=False)
        session, status = selector.create_session("model.onnx")
        assert status.provider == "cpu"
    """

    def __init__(
        self,
        use_gpu: bool = True,
        preference: Optional[Sequence[str]] = None,
        settings: Optional[SessionSettings] = None,
        session_factory: Callable[[str, List[str], SessionSettings], Any] = ort_session_factory,
        available_providers: Callable[[], List[str]] = ort_available_providers,
    ):
        """
        Args:
            use_gpu: Whether hardware acceleration is requested
            preference: Ordered provider preference (short names); defaults
                to the platform preference
            settings: Session options
            session_factory: Callable creating a session from a provider list
            available_providers: Callable listing providers the runtime offers
        """
        self.use_gpu = use_gpu
        self.preference = normalize_preference(preference or default_provider_preference())
        self.settings = settings or SessionSettings()
        self._session_factory = session_factory
        self._available_providers = available_providers

    def candidates(self) -> List[List[str]]:
        """Provider lists to try, in order; CPU-only is always last."""
        if self.use_gpu and self.preference != [CPU_PROVIDER]:
            return [list(self.preference), [CPU_PROVIDER]]
        return [[CPU_PROVIDER]]

    def _attempt(self, model_path: str, providers: List[str]) -> SessionAttempt:
        try:
            session = self._session_factory(model_path, providers, self.settings)
        except Exception as e:
            return SessionAttempt(providers=providers, error=e)
        return SessionAttempt(providers=providers, session=session)

    def create_session(self, model_path: str) -> Tuple[Any, BackendStatus]:
        """
        Create an inference session, falling back to CPU if needed.

        Args:
            model_path: Path to the ONNX model

        Returns:
            Tuple of (session, BackendStatus)

        Raises:
            BackendInitializationError: If the CPU-only attempt fails
        """
        if self.use_gpu:
            logger.info(f"GPU support enabled - requesting providers: {', '.join(self.preference)}")
        else:
            logger.info("Using CPU-only execution")

        attempt = None
        for providers in self.candidates():
            attempt = self._attempt(model_path, providers)
            if attempt.ok:
                break
            if providers == [CPU_PROVIDER]:
                logger.error(f"CPU session creation failed: {attempt.error}")
                raise BackendInitializationError(str(attempt.error), providers=providers) from attempt.error
            logger.warning(
                f"GPU initialization failed ({', '.join(providers)}), falling back to CPU: {attempt.error}"
            )

        status = self._resolve_status(attempt.providers)

        if status.available:
            logger.info(f"GPU acceleration active using: {status.provider.upper()}")
        else:
            logger.info(f"Using execution provider: {status.provider.upper()}")
        logger.info(f"Available execution providers: {', '.join(status.available_providers)}")

        return attempt.session, status

    def _resolve_status(self, requested: List[str]) -> BackendStatus:
        """First requested provider the runtime reports as available wins."""
        try:
            available = [to_short_name(p) for p in self._available_providers()]
        except Exception as e:
            logger.warning(f"Could not list available execution providers: {e}")
            available = []

        active = next((p for p in requested if p in available), None)
        if active is None:
            logger.warning("No requested execution providers available, falling back to CPU")
            active = CPU_PROVIDER

        return BackendStatus(
            enabled=self.use_gpu,
            available=active in ACCELERATED_PROVIDERS,
            provider=active,
            available_providers=tuple(available),
            requested_providers=tuple(requested),
        )
