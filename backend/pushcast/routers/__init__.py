"""API routers."""
from .devices import router as devices_router
from .deliveries import router as deliveries_router
from .campaigns import router as campaigns_router

__all__ = ["devices_router", "deliveries_router", "campaigns_router"]
