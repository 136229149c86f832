"""
Exceptions personnalisées pour LLM Relay.
"""
from typing import Optional


class RelayError(Exception):
    """Exception de base pour toutes les erreurs du relais."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(RelayError):
    """Erreur de configuration (clé API absente, fichier invalide, provider inconnu)."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message=message,
            code="config_error",
            details={"key": config_key} if config_key else {}
        )


class InvalidRequestError(RelayError):
    """Requête entrante invalide (rôle inconnu, contenu vide, pas de messages)."""

    def __init__(self, message: str, field: str = None):
        super().__init__(
            message=message,
            code="invalid_request",
            details={"field": field} if field else {}
        )


class UpstreamError(RelayError):
    """Erreur renvoyée par le provider (statut non-2xx ou erreur de transport)."""

    def __init__(
        self,
        message: str,
        provider: str = None,
        status_code: Optional[int] = None
    ):
        details = {}
        if provider:
            details["provider"] = provider
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=message,
            code="upstream_error",
            details=details
        )
        self.provider = provider
        self.status_code = status_code


class MalformedUpstreamData(RelayError):
    """Données de stream irrécupérables (buffer abandonné après trop d'échecs)."""

    def __init__(self, message: str, provider: str = None, preview: str = None):
        details = {}
        if provider:
            details["provider"] = provider
        if preview:
            details["preview"] = preview[:100]
        super().__init__(
            message=message,
            code="malformed_upstream_data",
            details=details
        )
