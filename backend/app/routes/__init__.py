"""
Route aggregation module.

Health routes are mounted at root by main.py.
Version: 1.0.0
"""
from app.routes.health import router as health_router

__all__ = ["health_router"]
