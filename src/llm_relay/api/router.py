"""
Router principal de l'API.
"""
from fastapi import APIRouter

from .routes import proxy, providers, health

# Router principal
api_router = APIRouter()

# Inclusion des sous-routers
api_router.include_router(providers.router, prefix="/api/providers", tags=["providers"])
api_router.include_router(health.router, prefix="", tags=["health"])
api_router.include_router(proxy.router, prefix="", tags=["proxy"])
