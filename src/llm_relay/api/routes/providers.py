"""
Routes API pour la consultation des providers.
"""
from fastapi import APIRouter, Request

router = APIRouter()


@router.get("")
async def api_get_providers(request: Request):
    """Retourne les providers enregistrés, sans jamais exposer les clés."""
    registry = request.app.state.registry
    result = [
        {"key": tag, **entry}
        for tag, entry in registry.describe().items()
    ]
    # Provider par défaut d'abord, puis alphabétique
    result.sort(key=lambda x: (0 if x["default"] else 1, x["key"]))
    return result
