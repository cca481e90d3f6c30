"""REST API for defect detection."""

from .routes import api

__all__ = ["api"]
