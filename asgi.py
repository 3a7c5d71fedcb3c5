"""
asgi.py -- ASGI entry point for SessionGate.

Kept separate from api/main.py so process managers have one stable import
path regardless of how the api package is organized.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
