"""
Dataclasses pour la configuration.
"""
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from ..core.constants import (
    DEFAULT_PROVIDER,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_HTTP_REFERER,
    DEFAULT_APP_TITLE,
)


@dataclass(frozen=True)
class Settings:
    """Configuration globale de l'application, résolue une fois au démarrage."""
    default_provider: str = DEFAULT_PROVIDER
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    http_referer: str = DEFAULT_HTTP_REFERER
    app_title: str = DEFAULT_APP_TITLE
    log_level: str = "INFO"
    providers: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "Settings":
        """Crée une instance depuis la configuration chargée."""
        from .loader import init_providers, get_gateway_config

        gateway = get_gateway_config(config)
        return cls(
            default_provider=gateway["default_provider"],
            request_timeout=gateway["request_timeout"],
            http_referer=gateway["http_referer"],
            app_title=gateway["app_title"],
            log_level=gateway["log_level"],
            providers=init_providers(config),
        )

    def get_provider(self, key: str) -> Optional[Dict[str, Any]]:
        """Récupère un provider par sa clé."""
        return self.providers.get(key)
