"""
FastAPI server for the vault agent.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
