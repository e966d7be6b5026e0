"""
CAPTCHA Solver HTTP API
=======================

FastAPI front-end for the solving engine.

Endpoints:
    GET  /             Service info
    GET  /health       Readiness, statistics and backend status
    POST /solve        Solve one base64-encoded image
    POST /solve/batch  Solve many images, results in input order
    GET  /stats        Statistics snapshot
    GET  /backend      Execution backend status

Run:
    captcha-ocr serve --port 3001
    # or
    uvicorn captcha_ocr.web.app:create_app --factory --port 3001
"""

import base64
import binascii
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .. import __version__
from ..config import ServiceConfig, get_config
from ..core.errors import SolverNotReadyError
from ..inference.solver import CaptchaSolver

logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class CaptchaPayload(BaseModel):
    image: Optional[str] = None
    id: Optional[str] = None


class BatchRequest(BaseModel):
    captchas: Optional[List[CaptchaPayload]] = None


class SolveResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    code: Optional[str] = None
    confidence: float
    method: str = "ONNX"
    solve_time_ms: float = Field(alias="solveTimeMs")


class BatchItemResponse(BaseModel):
    id: Optional[str] = None
    success: bool
    code: Optional[str] = None
    confidence: float


class BatchResponse(BaseModel):
    results: List[BatchItemResponse]


# =============================================================================
# HELPERS
# =============================================================================

def decode_image(data: str) -> bytes:
    """
    Decode a base64 image payload, accepting ``data:`` URLs.

    Raises:
        ValueError: If the payload is not valid base64
    """
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data.strip(), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64 image: {e}") from e


def get_solver(request: Request) -> CaptchaSolver:
    """Dependency returning the ready solver owned by the app."""
    solver: Optional[CaptchaSolver] = getattr(request.app.state, "solver", None)
    if solver is None or not solver.is_ready():
        raise HTTPException(status_code=503, detail="Solver not ready")
    return solver


def get_service_config(request: Request) -> ServiceConfig:
    return request.app.state.config


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(solver: Optional[CaptchaSolver] = None, config: Optional[ServiceConfig] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        solver: Pre-built solver; when omitted, one is created from
            configuration and initialized during startup, and a failure
            aborts startup
        config: Service configuration (defaults to ``get_config()``)
    """
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.solver is None
        if owned:
            logger.info("Initializing CAPTCHA solver...")
            built = CaptchaSolver.from_config(config.solver)
            built.verbose = config.server.is_development
            built.initialize(config.solver.model_path, config.solver.metadata_path)
            app.state.solver = built
            logger.info("CAPTCHA solver initialized successfully")

        status = app.state.solver.get_backend_status()
        logger.info(f"Environment: {config.server.environment}")
        logger.info(f"CAPTCHA Solver API ready (provider: {status.provider})")
        try:
            yield
        finally:
            if owned:
                app.state.solver.close()

    app = FastAPI(title="CAPTCHA Solver API", version=__version__, lifespan=lifespan)
    app.state.solver = solver
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_origin_regex=config.server.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SolverNotReadyError)
    async def not_ready_handler(request: Request, exc: SolverNotReadyError):
        return JSONResponse(status_code=503, content={"detail": exc.message})

    @app.get("/")
    def home():
        return {
            "message": "CAPTCHA Solver API",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "solve": "POST /solve",
                "batch": "POST /solve/batch",
                "stats": "/stats",
                "backend": "/backend",
            },
        }

    @app.get("/health")
    def health(request: Request):
        current: Optional[CaptchaSolver] = request.app.state.solver
        if current is None:
            return {"status": "ok", "ready": False, "stats": None, "backend": None}
        return {
            "status": "ok",
            "ready": current.is_ready(),
            "stats": current.get_stats().to_dict(),
            "backend": current.get_backend_status().to_dict(),
        }

    @app.post("/solve", response_model=SolveResponse)
    def solve(payload: CaptchaPayload, solver: CaptchaSolver = Depends(get_solver)):
        if not payload.image:
            raise HTTPException(status_code=400, detail="Missing image data")
        try:
            image_bytes = decode_image(payload.image)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid image data")

        result = solver.solve(image_bytes, payload.id)
        return SolveResponse(
            success=result.success,
            code=result.code,
            confidence=result.confidence,
            method=result.method,
            solve_time_ms=result.solve_time_ms,
        )

    @app.post("/solve/batch", response_model=BatchResponse)
    def solve_batch(
        payload: BatchRequest,
        solver: CaptchaSolver = Depends(get_solver),
        service_config: ServiceConfig = Depends(get_service_config),
    ):
        captchas = payload.captchas
        if not captchas:
            raise HTTPException(status_code=400, detail="Invalid captchas array")
        if len(captchas) > service_config.server.max_batch_size:
            raise HTTPException(
                status_code=400,
                detail=f"Batch too large (max {service_config.server.max_batch_size})",
            )

        items = []
        for item in captchas:
            try:
                image_bytes = decode_image(item.image) if item.image else b""
            except ValueError:
                logger.warning(f"Batch ID {item.id}: undecodable base64 payload")
                image_bytes = b""
            items.append((image_bytes, item.id))

        results = solver.solve_batch(items)
        return BatchResponse(results=[BatchItemResponse(**r.to_dict()) for r in results])

    @app.get("/stats")
    def stats(solver: CaptchaSolver = Depends(get_solver)):
        return solver.get_stats().to_dict()

    @app.get("/backend")
    def backend(solver: CaptchaSolver = Depends(get_solver)):
        return solver.get_backend_status().to_dict()

    return app
