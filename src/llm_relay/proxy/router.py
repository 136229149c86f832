"""
Routing des requêtes vers les providers.
"""
import logging
import os
from types import MappingProxyType
from typing import Dict, Any, Mapping, Optional, Tuple

from ..core.exceptions import ConfigurationError
from ..core.models import ProviderDescriptor

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Table immuable tag -> ProviderDescriptor.

    Construite une fois au démarrage; partagée en lecture seule par toutes
    les requêtes.
    """

    def __init__(
        self,
        descriptors: Mapping[str, ProviderDescriptor],
        default_tag: str,
        credentials: Optional[Mapping[str, str]] = None
    ):
        if default_tag not in descriptors:
            raise ConfigurationError(
                f"Provider par défaut inconnu: {default_tag}",
                config_key="gateway.default_provider"
            )
        self._descriptors = MappingProxyType(dict(descriptors))
        self._default_tag = default_tag
        # Magasin de secrets: l'environnement du process sauf injection explicite
        self._credentials = credentials if credentials is not None else os.environ

    @property
    def default(self) -> ProviderDescriptor:
        return self._descriptors[self._default_tag]

    @property
    def tags(self) -> Tuple[str, ...]:
        return tuple(self._descriptors)

    def get(self, tag: str) -> Optional[ProviderDescriptor]:
        """Récupère un descripteur par son tag."""
        return self._descriptors.get(tag)

    def resolve(self, model_id: str) -> Tuple[ProviderDescriptor, str]:
        """
        Résout un identifiant de modèle en (provider, modèle upstream).

        `tag/modele` sélectionne le provider `tag` si le tag est connu.
        Sinon le provider par défaut reçoit l'identifiant complet, slash compris.
        """
        if "/" in model_id:
            tag, upstream_model = model_id.split("/", 1)
            descriptor = self._descriptors.get(tag)
            if descriptor is not None:
                logger.debug(f"[REGISTRY] {model_id} → {tag} / {upstream_model}")
                return descriptor, upstream_model

        logger.debug(f"[REGISTRY] {model_id} → {self._default_tag} (défaut)")
        return self.default, model_id

    def has_credential(self, descriptor: ProviderDescriptor) -> bool:
        return bool(self._credentials.get(descriptor.auth_env_var))

    def resolve_credential(self, descriptor: ProviderDescriptor) -> str:
        """
        Retourne la clé API du provider.

        Raises:
            ConfigurationError: Si le secret n'est pas configuré
        """
        api_key = self._credentials.get(descriptor.auth_env_var)
        if not api_key:
            raise ConfigurationError(
                f"{descriptor.auth_env_var} not configured.",
                config_key=descriptor.auth_env_var
            )
        return api_key

    def describe(self) -> Dict[str, Dict[str, Any]]:
        """Vue sérialisable des providers, avec statut de la clé (jamais la clé)."""
        result = {}
        for tag, descriptor in self._descriptors.items():
            entry = descriptor.to_dict()
            entry["has_api_key"] = self.has_credential(descriptor)
            entry["default"] = tag == self._default_tag
            result[tag] = entry
        return result


def build_registry(
    providers: Dict[str, Dict[str, Any]],
    default_tag: str,
    credentials: Optional[Mapping[str, str]] = None
) -> ProviderRegistry:
    """
    Construit le registre depuis la table fusionnée des providers.

    Args:
        providers: Table tag -> entrée de configuration
        default_tag: Provider utilisé quand aucun tag ne correspond
        credentials: Magasin de secrets (défaut: os.environ)
    """
    descriptors = {
        tag: ProviderDescriptor.from_dict(tag, data)
        for tag, data in providers.items()
    }
    logger.info(f"[REGISTRY] {len(descriptors)} provider(s) chargé(s), défaut: {default_tag}")
    return ProviderRegistry(descriptors, default_tag, credentials)
