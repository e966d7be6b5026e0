"""
CAPTCHA Solving Engine
======================

Owns the metadata, the ONNX model and the statistics for one serving
process. Construct one instance at startup, initialize it, then hand it to
every request handler.

States:
    UNINITIALIZED --initialize()--> READY
    UNINITIALIZED --initialize() fails--> FAILED (terminal)
    READY --close()--> CLOSED (terminal)

Per-request failures (undecodable image, inference exception, invalid
candidate) never raise; they come back as ``SolveResult.failed`` and are
counted in ``failures``.

Usage:
    from captcha_ocr.inference import CaptchaSolver

    solver = CaptchaSolver(use_gpu=False)
    solver.initialize("models/captcha_model.onnx", "models/captcha_model_metadata.json")
    result = solver.solve(image_bytes, request_id="abc")
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from ..core.decoding import CaptchaDecoder
from ..core.errors import (
    CaptchaSolverError,
    ModelLoadError,
    SolverInitializationError,
    SolverNotReadyError,
)
from ..core.metadata import ModelMetadata, load_metadata
from ..core.results import BatchItemResult, SolveResult
from ..core.stats import SolverStats, StatsAggregator
from ..preprocessing import CaptchaPreprocessor
from ..utils.gpu_utils import BackendStatus, ExecutionBackendSelector, SessionSettings
from .onnx_inference import ONNXCaptchaModel

logger = logging.getLogger(__name__)

BatchItem = Tuple[bytes, Optional[str]]


class SolverState(str, Enum):
    """Lifecycle of the solving engine."""
    UNINITIALIZED = 'uninitialized'
    READY = 'ready'
    FAILED = 'failed'
    CLOSED = 'closed'


class CaptchaSolver:
    """
    Concurrent-safe CAPTCHA solving engine.

    Metadata, model and preprocessor are read-only after ``initialize``;
    the statistics aggregator is the only shared mutable state.
    """

    def __init__(
        self,
        use_gpu: bool = True,
        selector: Optional[ExecutionBackendSelector] = None,
        batch_workers: int = 8,
        low_confidence_threshold: float = 0.9,
        verbose: bool = False,
    ):
        """
        Args:
            use_gpu: Request hardware acceleration (ignored if ``selector`` is given)
            selector: Backend selector, mostly for tests and custom provider lists
            batch_workers: Thread pool size for batch fan-out
            low_confidence_threshold: Solves below this are logged at INFO
            verbose: Log every successful solve at INFO
        """
        self.selector = selector or ExecutionBackendSelector(use_gpu=use_gpu)
        self.batch_workers = max(1, batch_workers)
        self.low_confidence_threshold = low_confidence_threshold
        self.verbose = verbose

        self.state = SolverState.UNINITIALIZED
        self.metadata: Optional[ModelMetadata] = None
        self.model: Optional[ONNXCaptchaModel] = None
        self.preprocessor: Optional[CaptchaPreprocessor] = None
        self.decoder: Optional[CaptchaDecoder] = None
        self._backend_status = BackendStatus(enabled=self.selector.use_gpu)
        self._stats = StatsAggregator()
        self._executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def from_config(cls, config) -> 'CaptchaSolver':
        """Build an uninitialized solver from a ``SolverConfig``."""
        selector = ExecutionBackendSelector(
            use_gpu=config.use_gpu,
            preference=config.execution_providers or None,
            settings=SessionSettings(
                inter_op_threads=config.inter_op_threads,
                intra_op_threads=config.intra_op_threads,
            ),
        )
        return cls(
            selector=selector,
            batch_workers=config.batch_workers,
            low_confidence_threshold=config.low_confidence_threshold,
        )

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self, model_path: Union[str, Path], metadata_path: Union[str, Path]) -> None:
        """
        Load metadata, create the session, warm up the model.

        Raises:
            SolverInitializationError: On any failure; the solver is then FAILED
        """
        if self.state is not SolverState.UNINITIALIZED:
            raise SolverInitializationError(f"cannot initialize a solver in state '{self.state.value}'")

        model_path = Path(model_path)
        logger.info(f"Loading ONNX model from: {model_path}")

        try:
            metadata = load_metadata(metadata_path)

            if not model_path.exists():
                raise ModelLoadError(f"ONNX model not found: {model_path}", model_path=str(model_path))

            session, backend_status = self.selector.create_session(str(model_path))
            model = ONNXCaptchaModel(session, model_path=str(model_path))
            model.warm_up(metadata.height, metadata.width)
        except CaptchaSolverError as e:
            self.state = SolverState.FAILED
            logger.error(f"Failed to initialize: {e}")
            raise SolverInitializationError(str(e), cause=e) from e
        except Exception as e:
            self.state = SolverState.FAILED
            logger.exception("Failed to initialize")
            raise SolverInitializationError(str(e), cause=e) from e

        self.metadata = metadata
        self.model = model
        self.preprocessor = CaptchaPreprocessor.from_metadata(metadata)
        self.decoder = CaptchaDecoder(metadata)
        self._backend_status = backend_status
        self._executor = ThreadPoolExecutor(
            max_workers=self.batch_workers, thread_name_prefix='captcha-batch'
        )
        self.state = SolverState.READY
        logger.info("ONNX model initialized successfully")

    def is_ready(self) -> bool:
        return self.state is SolverState.READY

    def _require_ready(self):
        if self.state is not SolverState.READY:
            raise SolverNotReadyError(self.state.value)

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------

    def solve(self, image_bytes: bytes, request_id: Optional[str] = None) -> SolveResult:
        """
        Solve one CAPTCHA image.

        Args:
            image_bytes: Raw encoded image
            request_id: Optional caller identifier, used in logs

        Returns:
            SolveResult; never raises once the solver is ready

        Raises:
            SolverNotReadyError: If called before initialization completed
        """
        self._require_ready()
        start = time.perf_counter()

        try:
            result = self._solve(image_bytes, request_id, start)
        except Exception:
            logger.exception(f"ID {request_id}: Exception while solving")
            result = SolveResult.failed(self._elapsed_ms(start))

        self._stats.record(result.solve_time_ms, result.confidence if result.success else None)
        return result

    def _solve(self, image_bytes: bytes, request_id: Optional[str], start: float) -> SolveResult:
        tensor = self.preprocessor.preprocess(image_bytes)
        if tensor is None:
            logger.warning(f"ID {request_id}: Failed preprocessing")
            return SolveResult.failed(self._elapsed_ms(start))

        outputs = self.model.predict(tensor)
        decoded = self.decoder.decode(outputs)
        if decoded is None:
            logger.warning(f"ID {request_id}: Failed validation")
            return SolveResult.failed(self._elapsed_ms(start))

        if self.verbose or decoded.confidence < self.low_confidence_threshold:
            logger.info(f"ID {request_id}: Solved '{decoded.code}' ({decoded.confidence:.3f})")
        else:
            logger.debug(f"ID {request_id}: Solved '{decoded.code}' ({decoded.confidence:.3f})")

        return SolveResult.solved(decoded, self._elapsed_ms(start))

    def solve_batch(self, items: Iterable[BatchItem]) -> List[BatchItemResult]:
        """
        Solve many images concurrently.

        Each item is preprocessed, run and decoded on its own worker; one
        item failing does not affect the others. The result list has the
        same length and order as ``items``.

        Args:
            items: (image_bytes, id) pairs

        Returns:
            One BatchItemResult per input item
        """
        self._require_ready()
        executor = self._executor
        if executor is None:
            raise SolverNotReadyError(SolverState.CLOSED.value)
        items = list(items)
        if not items:
            return []

        results = executor.map(lambda item: self.solve(item[0], item[1]), items)
        return [
            BatchItemResult(id=request_id, result=result)
            for (_, request_id), result in zip(items, results)
        ]

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_stats(self) -> SolverStats:
        """Snapshot of the running statistics."""
        return self._stats.snapshot()

    def get_backend_status(self) -> BackendStatus:
        """Execution backend diagnostics (immutable)."""
        return self._backend_status

    def close(self):
        """Shut the batch worker pool down; the solver stops accepting work."""
        if self.state is SolverState.READY:
            self.state = SolverState.CLOSED
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.perf_counter() - start) * 1000.0
