"""Reweave: safe execution engine for repository migration plans."""

__version__ = "0.1.0"
