"""
Dataclasses métier pour LLM Relay.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any

from .constants import (
    RESPONSE_SHAPES,
    FAMILY_OPENAI,
    FAMILY_GEMINI,
    AUTH_BEARER,
    AUTH_QUERY,
    DEFAULT_REQUEST_TIMEOUT,
)
from .exceptions import InvalidRequestError, ConfigurationError

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
VALID_ROLES = (ROLE_SYSTEM, ROLE_USER, ROLE_ASSISTANT)


def _check_message(role: Any, content: Any, prefix: str) -> None:
    if role not in VALID_ROLES:
        raise InvalidRequestError(
            f"{prefix}.role invalide: {role!r} (attendu: {', '.join(VALID_ROLES)})",
            field=f"{prefix}.role"
        )
    if not isinstance(content, str) or not content:
        raise InvalidRequestError(
            f"{prefix}.content doit être un texte non vide",
            field=f"{prefix}.content"
        )


@dataclass(frozen=True)
class Message:
    """Un tour de conversation (rôle + texte)."""
    role: str
    content: str

    def __post_init__(self):
        _check_message(self.role, self.content, "message")

    @classmethod
    def from_dict(cls, data: Any, index: int = 0) -> "Message":
        """
        Crée un message depuis un dictionnaire client.

        Seuls `role` et `content` sont retenus: les métadonnées côté client
        ne doivent jamais partir chez le provider.

        Raises:
            InvalidRequestError: Rôle inconnu ou contenu vide
        """
        if not isinstance(data, dict):
            raise InvalidRequestError(
                f"messages[{index}] doit être un objet",
                field=f"messages[{index}]"
            )

        role, content = data.get("role"), data.get("content")
        # Préfixe indexé pour situer l'erreur dans le body client
        _check_message(role, content, f"messages[{index}]")
        return cls(role=role, content=content)

    def to_dict(self) -> Dict[str, str]:
        """Convertit le message en dictionnaire."""
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatRequest:
    """Requête de chat indépendante du provider."""
    model_id: str
    messages: List[Message] = field(default_factory=list)

    def __post_init__(self):
        if not self.model_id:
            raise InvalidRequestError("Le champ 'model' est requis", field="model")
        if not self.messages:
            raise InvalidRequestError("Au moins un message est requis", field="messages")

    @classmethod
    def from_payload(cls, payload: Any) -> "ChatRequest":
        """
        Valide un body JSON entrant `{model, messages}`.

        `modelId` est accepté comme alias de `model`.
        """
        if not isinstance(payload, dict):
            raise InvalidRequestError("Le body doit être un objet JSON")

        model_id = payload.get("model") or payload.get("modelId")
        if not isinstance(model_id, str):
            raise InvalidRequestError("Le champ 'model' est requis", field="model")

        raw_messages = payload.get("messages")
        if not isinstance(raw_messages, list):
            raise InvalidRequestError("Le champ 'messages' doit être une liste", field="messages")

        messages = [Message.from_dict(m, i) for i, m in enumerate(raw_messages)]
        return cls(model_id=model_id, messages=messages)


@dataclass(frozen=True)
class ProviderDescriptor:
    """Description immuable d'un provider upstream."""
    tag: str
    auth_env_var: str
    endpoint_template: str
    requires_streaming_flag_in_body: bool
    response_shape: str
    family: str = FAMILY_OPENAI
    auth_scheme: str = AUTH_BEARER
    timeout: float = DEFAULT_REQUEST_TIMEOUT

    def __post_init__(self):
        if self.response_shape not in RESPONSE_SHAPES:
            raise ConfigurationError(
                f"Forme de réponse inconnue pour {self.tag}: {self.response_shape}",
                config_key=f"providers.{self.tag}.response_shape"
            )
        if self.family not in (FAMILY_OPENAI, FAMILY_GEMINI):
            raise ConfigurationError(
                f"Famille inconnue pour {self.tag}: {self.family}",
                config_key=f"providers.{self.tag}.family"
            )
        if self.auth_scheme not in (AUTH_BEARER, AUTH_QUERY):
            raise ConfigurationError(
                f"Schéma d'authentification inconnu pour {self.tag}: {self.auth_scheme}",
                config_key=f"providers.{self.tag}.auth"
            )

    @classmethod
    def from_dict(cls, tag: str, data: Dict[str, Any]) -> "ProviderDescriptor":
        """Crée un descripteur depuis une entrée de la table des providers."""
        endpoint = data.get("endpoint")
        if not endpoint:
            raise ConfigurationError(
                f"Endpoint manquant pour le provider {tag}",
                config_key=f"providers.{tag}.endpoint"
            )
        return cls(
            tag=tag,
            auth_env_var=data.get("auth_env_var", f"{tag.upper().replace('-', '_')}_API_KEY"),
            endpoint_template=endpoint,
            requires_streaming_flag_in_body=bool(data.get("stream_flag", False)),
            response_shape=data.get("response_shape", "sse-passthrough"),
            family=data.get("family", FAMILY_OPENAI),
            auth_scheme=data.get("auth", AUTH_BEARER),
            timeout=float(data.get("timeout", DEFAULT_REQUEST_TIMEOUT)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convertit le descripteur en dictionnaire (sans secret)."""
        return {
            "tag": self.tag,
            "auth_env_var": self.auth_env_var,
            "endpoint": self.endpoint_template,
            "family": self.family,
            "response_shape": self.response_shape,
            "stream_flag": self.requires_streaming_flag_in_body,
            "auth": self.auth_scheme,
            "timeout": self.timeout,
        }


@dataclass(frozen=True)
class NormalizedDelta:
    """Incrément de texte généré."""
    text: str


@dataclass(frozen=True)
class RawFrame:
    """Frame SSE upstream relayée telle quelle."""
    data: bytes


@dataclass(frozen=True)
class TerminalEvent:
    """Fin de stream, émise exactement une fois par requête."""
    error_message: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error_message is not None


@dataclass(frozen=True)
class UpstreamCall:
    """Appel HTTP construit par un transformer."""
    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]
