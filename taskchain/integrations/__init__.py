"""Integration modules for external services."""

from .http import request

__all__ = ["request"]
