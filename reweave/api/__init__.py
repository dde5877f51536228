"""HTTP surface for Reweave."""

from .app import create_app

__all__ = ["create_app"]
