"""
Service Configuration - Centralized Settings
============================================

All configurable parameters in one place.
Supports environment variable overrides and ``.env`` files.

Usage:
    from captcha_ocr.config import get_config
    config = get_config()
    print(config.solver.model_path)

Environment Variables:
    CAPTCHA_MODEL_PATH=./models/captcha_model.onnx
    CAPTCHA_USE_GPU=false
    CAPTCHA_EXECUTION_PROVIDERS=cuda,cpu
    CAPTCHA_PORT=3001
    CAPTCHA_LOG_LEVEL=DEBUG
"""

import os
import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Dict, Any, List

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _get_env_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Invalid float for {key}: {value}, using default {default}")
    return default


def _get_env_int(key: str, default: int) -> int:
    """Get int from environment variable."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid int for {key}: {value}, using default {default}")
    return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get bool from environment variable."""
    value = os.environ.get(key)
    if value is not None:
        return value.lower() in ('true', '1', 'yes', 'on')
    return default


def _get_env_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


def _get_env_list(key: str, default: List[str]) -> List[str]:
    """Get comma-separated list from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(',') if item.strip()]


@dataclass
class SolverConfig:
    """Solving engine configuration."""

    # Artifacts
    model_path: str = field(
        default_factory=lambda: _get_env_str('CAPTCHA_MODEL_PATH', './models/captcha_model.onnx')
    )
    metadata_path: str = field(
        default_factory=lambda: _get_env_str(
            'CAPTCHA_METADATA_PATH', './models/captcha_model_metadata.json'
        )
    )

    # Hardware
    use_gpu: bool = field(
        default_factory=lambda: _get_env_bool('CAPTCHA_USE_GPU', True)
    )
    # Empty means "platform default" (see gpu_utils.default_provider_preference)
    execution_providers: List[str] = field(
        default_factory=lambda: _get_env_list('CAPTCHA_EXECUTION_PROVIDERS', [])
    )
    inter_op_threads: int = field(
        default_factory=lambda: _get_env_int('CAPTCHA_INTER_OP_THREADS', 4)
    )
    intra_op_threads: int = field(
        default_factory=lambda: _get_env_int('CAPTCHA_INTRA_OP_THREADS', 4)
    )

    # Batch fan-out
    batch_workers: int = field(
        default_factory=lambda: _get_env_int('CAPTCHA_BATCH_WORKERS', 8)
    )

    # Solves below this confidence are logged at INFO even in production
    low_confidence_threshold: float = field(
        default_factory=lambda: _get_env_float('CAPTCHA_LOW_CONFIDENCE', 0.9)
    )


@dataclass
class ServerConfig:
    """HTTP server configuration."""

    host: str = field(
        default_factory=lambda: _get_env_str('CAPTCHA_HOST', '0.0.0.0')
    )
    port: int = field(
        default_factory=lambda: _get_env_int('CAPTCHA_PORT', 3001)
    )
    environment: str = field(
        default_factory=lambda: _get_env_str('CAPTCHA_ENV', 'production')
    )

    # CORS
    cors_origins: List[str] = field(
        default_factory=lambda: _get_env_list('CAPTCHA_CORS_ORIGINS', ['http://localhost:3000'])
    )
    cors_origin_regex: Optional[str] = field(
        default_factory=lambda: _get_env_str('CAPTCHA_CORS_ORIGIN_REGEX', r'https://.*\.convex\.cloud') or None
    )

    max_batch_size: int = field(
        default_factory=lambda: _get_env_int('CAPTCHA_MAX_BATCH_SIZE', 64)
    )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == 'development'


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(
        default_factory=lambda: _get_env_str('CAPTCHA_LOG_LEVEL', 'INFO')
    )
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    date_format: str = '%Y-%m-%d %H:%M:%S'

    # File logging (optional)
    log_file: Optional[str] = field(
        default_factory=lambda: os.environ.get('CAPTCHA_LOG_FILE')
    )


@dataclass
class ServiceConfig:
    """Complete service configuration."""

    solver: SolverConfig = field(default_factory=SolverConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def save(self, path: Path):
        """Save configuration to JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> 'ServiceConfig':
        """Load configuration from JSON file; unknown keys are ignored."""
        with open(path) as f:
            data = json.load(f)

        config = cls()

        for section in ('solver', 'server', 'logging'):
            target = getattr(config, section)
            for key, value in data.get(section, {}).items():
                if hasattr(target, key):
                    setattr(target, key, value)

        return config


# Global configuration instance (singleton pattern)
_config: Optional[ServiceConfig] = None


def get_config() -> ServiceConfig:
    """
    Get the global configuration instance.

    Loads ``.env`` and creates a new instance on first call,
    returns cached instance thereafter.
    """
    global _config
    if _config is None:
        load_dotenv()
        _config = ServiceConfig()
        _setup_logging(_config.logging)
    return _config


def load_config(path) -> ServiceConfig:
    """
    Load configuration from a JSON file and make it the global instance.

    Environment variables still provide the defaults for keys the file
    does not set.
    """
    global _config
    load_dotenv()
    _config = ServiceConfig.load(Path(path))
    _setup_logging(_config.logging)
    return _config


def reset_config():
    """Reset configuration to defaults (useful for testing)."""
    global _config
    _config = None


def _setup_logging(config: LoggingConfig):
    """Configure logging based on settings."""
    level = getattr(logging, config.level.upper(), logging.INFO)

    handlers = [logging.StreamHandler()]

    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=level,
        format=config.format,
        datefmt=config.date_format,
        handlers=handlers,
    )
