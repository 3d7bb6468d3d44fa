"""API package exports."""

from tower.api.auth import router as auth_router
from tower.api.health import router as health_router
from tower.api.middleware import CorrelationIdMiddleware

__all__ = ["auth_router", "health_router", "CorrelationIdMiddleware"]
