"""
asgi.py -- ASGI entry point for Gatehouse.

api/main.py owns the FastAPI app and its middleware; this module only gives
process managers a stable import path that does not change if the app module
is ever reorganised.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
