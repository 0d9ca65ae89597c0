# (c) Copyright Datacraft, 2026
"""API routers."""
from .rules import router as rules_router
from .versions import router as versions_router

__all__ = ["rules_router", "versions_router"]
