"""
Transformations de format entre la requête canonique et les APIs providers (OpenAI, Gemini).
"""
from typing import Dict, Any, List, Optional, Tuple
from urllib.parse import quote

from ..core.constants import (
    FAMILY_OPENAI,
    FAMILY_GEMINI,
    AUTH_BEARER,
    AUTH_QUERY,
    USER_AGENT,
)
from ..core.exceptions import ConfigurationError
from ..core.models import (
    ChatRequest,
    ProviderDescriptor,
    UpstreamCall,
    ROLE_SYSTEM,
    ROLE_USER,
    ROLE_ASSISTANT,
)


def build_endpoint(
    descriptor: ProviderDescriptor,
    model: str,
    api_key: str
) -> str:
    """
    Construit l'URL cible depuis le template du provider.

    Pour l'auth par query string, la clé est ajoutée en paramètre `key`.
    """
    url = descriptor.endpoint_template.format(model=quote(model, safe="-._~"))
    if descriptor.auth_scheme == AUTH_QUERY:
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}key={quote(api_key, safe='')}"
    return url


def _base_headers(descriptor: ProviderDescriptor, api_key: str) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    if descriptor.auth_scheme == AUTH_BEARER:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


class OpenAITransformer:
    """Body `{model, messages, stream}` + auth Bearer (OpenRouter et compatibles)."""

    family = FAMILY_OPENAI

    def __init__(self, http_referer: str = None, app_title: str = None):
        self.http_referer = http_referer
        self.app_title = app_title

    def build(
        self,
        request: ChatRequest,
        descriptor: ProviderDescriptor,
        upstream_model: str,
        api_key: str
    ) -> UpstreamCall:
        body: Dict[str, Any] = {
            "model": upstream_model,
            # Seuls role/content partent chez le provider
            "messages": [m.to_dict() for m in request.messages],
        }
        if descriptor.requires_streaming_flag_in_body:
            body["stream"] = True

        headers = _base_headers(descriptor, api_key)
        if self.http_referer:
            headers["HTTP-Referer"] = self.http_referer
        if self.app_title:
            headers["X-Title"] = self.app_title

        return UpstreamCall(
            url=build_endpoint(descriptor, upstream_model, api_key),
            headers=headers,
            body=body
        )


def convert_to_gemini_format(request: ChatRequest) -> Dict[str, Any]:
    """
    Convertit les messages canoniques au format Gemini.

    - Le PREMIER message system devient `systemInstruction` (rôle "user",
      contrainte Gemini); les suivants sont ignorés, pas fusionnés.
    - assistant → model, user → user, ordre préservé.
    """
    system_prompt, contents = _split_gemini_messages(request)

    gemini_body: Dict[str, Any] = {"contents": contents}
    if system_prompt:
        gemini_body["systemInstruction"] = {
            "role": "user",
            "parts": [{"text": system_prompt}]
        }
    return gemini_body


def _split_gemini_messages(request: ChatRequest) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    system_prompt = None
    contents = []

    for msg in request.messages:
        if msg.role == ROLE_SYSTEM:
            if system_prompt is None and msg.content:
                system_prompt = msg.content
            continue

        gemini_role = "model" if msg.role == ROLE_ASSISTANT else ROLE_USER
        contents.append({
            "role": gemini_role,
            "parts": [{"text": msg.content}]
        })

    return system_prompt, contents


class GeminiTransformer:
    """Body `{contents, systemInstruction}` + clé API en query param."""

    family = FAMILY_GEMINI

    def build(
        self,
        request: ChatRequest,
        descriptor: ProviderDescriptor,
        upstream_model: str,
        api_key: str
    ) -> UpstreamCall:
        return UpstreamCall(
            url=build_endpoint(descriptor, upstream_model, api_key),
            headers=_base_headers(descriptor, api_key),
            body=convert_to_gemini_format(request)
        )


def get_transformer(
    family: str,
    http_referer: str = None,
    app_title: str = None
):
    """
    Retourne le transformer de la famille de provider.

    Raises:
        ConfigurationError: Famille inconnue
    """
    if family == FAMILY_OPENAI:
        return OpenAITransformer(http_referer=http_referer, app_title=app_title)
    if family == FAMILY_GEMINI:
        return GeminiTransformer()
    raise ConfigurationError(f"Aucun transformer pour la famille {family}", config_key="family")
