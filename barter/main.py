"""FastAPI application entry point."""

from barter.application import create_app

app = create_app()

__all__ = ["app"]
