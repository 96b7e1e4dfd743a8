"""HTTP API for the booking mapper."""

from .app import create_app

__all__ = ["create_app"]
