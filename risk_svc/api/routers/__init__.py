"""
API routers module.

This module contains all API route definitions organized by domain.
"""
from api.routers.health import router as health_router
from api.routers.health import api_router as api_health_router
from api.routers.predictions import router as predictions_router

__all__ = ["health_router", "api_health_router", "predictions_router"]
