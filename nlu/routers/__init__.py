"""API routers."""

from .bots import router as bots_router
from .training import router as training_router
from .health import router as health_router

__all__ = [
    "bots_router",
    "training_router",
    "health_router",
]
