"""API package exports."""

from browsercron.api.middleware import CorrelationIdMiddleware
from browsercron.api.routes import router

__all__ = ["router", "CorrelationIdMiddleware"]
