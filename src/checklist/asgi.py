"""
ASGI entry point.

Usage:
    uvicorn checklist.asgi:app
"""
from __future__ import annotations

from .main import create_app

app = create_app()
