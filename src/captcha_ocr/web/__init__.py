"""
CAPTCHA OCR Web API
===================

FastAPI application exposing the solving engine over HTTP.

Usage:
    from captcha_ocr.web import create_app

    app = create_app()
"""

from .app import create_app

__all__ = ['create_app']
