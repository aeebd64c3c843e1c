"""HTTP API for Doko Runtime."""

from .health import router as health_router
from .programs import router as programs_router

__all__ = [
    "health_router",
    "programs_router",
]
