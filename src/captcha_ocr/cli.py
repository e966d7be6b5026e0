#!/usr/bin/env python3
"""
CAPTCHA OCR CLI - Command Line Interface
========================================

Main CLI entry point for CAPTCHA OCR operations.

Usage:
    captcha-ocr serve                  Start the HTTP API
    captcha-ocr solve <image>          Solve a single CAPTCHA image
    captcha-ocr batch <folder>         Batch process a folder
    captcha-ocr backend                Show execution backend status
    captcha-ocr config                 Show or save the effective configuration

Global options:
    --config FILE                      Load settings from a JSON file
"""

import argparse
import json
import sys
from pathlib import Path

from . import __version__
from .config import get_config, load_config

IMAGE_PATTERNS = ("*.png", "*.jpg", "*.jpeg", "*.bmp", "*.webp")


def _load_solver(args):
    """Build and initialize a solver from configuration plus CLI overrides."""
    from .inference import CaptchaSolver

    config = get_config().solver
    if args.cpu:
        config.use_gpu = False

    solver = CaptchaSolver.from_config(config)
    solver.initialize(args.model or config.model_path, args.metadata or config.metadata_path)
    return solver


def cmd_serve(args):
    """Start the FastAPI server."""
    import uvicorn
    from .web import create_app

    config = get_config()
    if args.cpu:
        config.solver.use_gpu = False

    host = args.host or config.server.host
    port = args.port or config.server.port

    print(f"Starting CAPTCHA Solver API on {host}:{port}...")
    uvicorn.run(create_app(config=config), host=host, port=port, log_config=None)

    return 0


def cmd_solve(args):
    """Solve a single CAPTCHA image."""
    from .core.errors import SolverInitializationError

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"Error: Image not found: {image_path}")
        return 1

    try:
        solver = _load_solver(args)
    except SolverInitializationError as e:
        print(f"Error: {e}")
        return 1

    try:
        result = solver.solve(image_path.read_bytes(), request_id=image_path.name)
    finally:
        solver.close()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    elif result.success:
        print(f"Code: {result.code}")
        print(f"Confidence: {result.confidence:.3f}")
        print(f"Time: {result.solve_time_ms:.1f} ms")
    else:
        print("Failed to solve CAPTCHA")

    return 0 if result.success else 1


def cmd_batch(args):
    """Batch process a folder of images."""
    from .core.errors import SolverInitializationError

    folder = Path(args.folder)
    if not folder.exists():
        print(f"Error: Folder not found: {folder}")
        return 1

    images = sorted(p for pattern in IMAGE_PATTERNS for p in folder.glob(pattern))
    if not images:
        print(f"No images found in {folder}")
        return 1

    print(f"Processing {len(images)} images...")

    try:
        solver = _load_solver(args)
    except SolverInitializationError as e:
        print(f"Error: {e}")
        return 1

    try:
        results = solver.solve_batch((img.read_bytes(), img.name) for img in images)
        stats = solver.get_stats()
    finally:
        solver.close()

    for item in results:
        status = "✓" if item.success else "✗"
        print(f"  {status} {item.id}: {item.code or '-'} ({item.confidence:.2f})")

    print(f"\nSummary: {stats.successful_decodes}/{stats.total_attempts} solved, "
          f"avg {stats.average_solve_time_ms:.1f} ms")

    if args.output:
        with open(args.output, 'w') as f:
            json.dump([item.to_dict() for item in results], f, indent=2)
        print(f"Results saved to: {args.output}")

    return 0


def cmd_backend(args):
    """Print execution backend status after initializing the model."""
    from .core.errors import SolverInitializationError

    try:
        solver = _load_solver(args)
    except SolverInitializationError as e:
        print(f"Error: {e}")
        return 1

    print(json.dumps(solver.get_backend_status().to_dict(), indent=2))
    solver.close()
    return 0


def cmd_config(args):
    """Print the effective configuration, or save it as JSON."""
    config = get_config()

    if args.output:
        config.save(Path(args.output))
        print(f"Configuration saved to: {args.output}")
    else:
        print(json.dumps(config.to_dict(), indent=2))

    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='captcha-ocr',
        description='CAPTCHA OCR - Decode 4-character CAPTCHA images with an ONNX classifier',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--config', '-c', help='JSON configuration file (see "captcha-ocr config --output")')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    def add_model_args(p):
        p.add_argument('--model', '-m', help='Path to ONNX model (default: CAPTCHA_MODEL_PATH)')
        p.add_argument('--metadata', help='Path to metadata JSON (default: CAPTCHA_METADATA_PATH)')
        p.add_argument('--cpu', action='store_true', help='Disable GPU execution providers')

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Start the HTTP API')
    serve_parser.add_argument('--host', help='Bind address')
    serve_parser.add_argument('--port', '-p', type=int, help='Port number')
    serve_parser.add_argument('--cpu', action='store_true', help='Disable GPU execution providers')

    # Solve command
    solve_parser = subparsers.add_parser('solve', help='Solve a CAPTCHA image')
    solve_parser.add_argument('image', help='Path to image file')
    solve_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')
    add_model_args(solve_parser)

    # Batch command
    batch_parser = subparsers.add_parser('batch', help='Batch process folder')
    batch_parser.add_argument('folder', help='Path to folder with images')
    batch_parser.add_argument('--output', '-o', help='Output JSON file')
    add_model_args(batch_parser)

    # Backend command
    backend_parser = subparsers.add_parser('backend', help='Show execution backend status')
    add_model_args(backend_parser)

    # Config command
    config_parser = subparsers.add_parser('config', help='Show or save the effective configuration')
    config_parser.add_argument('--output', '-o', help='Write configuration to this JSON file')

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}")
            return 1
        load_config(config_path)

    commands = {
        'serve': cmd_serve,
        'solve': cmd_solve,
        'batch': cmd_batch,
        'backend': cmd_backend,
        'config': cmd_config,
    }

    return commands[args.command](args)


if __name__ == '__main__':
    sys.exit(main())
