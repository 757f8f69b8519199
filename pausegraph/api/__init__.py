"""
API package - FastAPI routes and schemas.
"""

from pausegraph.api.routes import workflows

__all__ = ["workflows"]
