"""
Route proxy principale /api/chat (et alias /chat/completions).
"""
from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from ...core.constants import SSE_HEADERS, SSE_MEDIA_TYPE

router = APIRouter()

CALLER_IDENTITY_HEADER = "x-caller-identity"


def get_caller_identity(request: Request) -> str:
    """
    Identité de l'appelant, déjà vérifiée en amont.

    Priorité: request.state (middleware d'auth), puis header, puis "anonymous".
    """
    identity = getattr(request.state, "caller_identity", None)
    if identity:
        return str(identity)
    return request.headers.get(CALLER_IDENTITY_HEADER) or "anonymous"


@router.post("/api/chat")
@router.post("/chat/completions")
async def proxy_chat(request: Request):
    """
    Relais streaming vers le provider résolu depuis `model`.

    La réponse est toujours un stream SSE: les erreurs (validation, clé
    manquante, provider en erreur) y sont signalées par une frame
    `event: error` suivie du terminal `data: [DONE]`.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    gateway = request.app.state.gateway
    return StreamingResponse(
        gateway.handle_payload(get_caller_identity(request), payload),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS
    )
