"""FastAPI proxy for the post-rewriting and single-account feed endpoints."""

from .main import app, create_app

__all__ = ["app", "create_app"]
