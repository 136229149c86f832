"""
Routes API pour le health check.
"""
from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check avec le provider par défaut et le nombre de providers."""
    registry = request.app.state.registry
    return {
        "status": "ok",
        "default_provider": registry.default.tag,
        "providers": len(registry.tags),
    }
