"""
LLM Relay - Application FastAPI Factory.
Relais streaming multi-provider (OpenRouter, Gemini) vers un protocole SSE uniforme.
"""
import logging
from contextlib import asynccontextmanager
from typing import Mapping, Optional

import httpx
from fastapi import FastAPI

from .api.router import api_router
from .config.loader import load_config
from .config.settings import Settings
from .core.logging_setup import setup_logging
from .proxy.client import create_proxy_client
from .proxy.router import ProviderRegistry, build_registry
from .proxy.session import GatewaySession

logger = logging.getLogger(__name__)


def create_app(
    config_path: str = None,
    credentials: Optional[Mapping[str, str]] = None,
    http_client: Optional[httpx.AsyncClient] = None
) -> FastAPI:
    """
    Factory pour créer l'application FastAPI.

    La configuration est résolue une seule fois ici: le registre des
    providers est immuable ensuite.

    Args:
        config_path: Chemin du config.toml (défaut: LLM_RELAY_CONFIG puis racine projet)
        credentials: Magasin de secrets (défaut: os.environ)
        http_client: AsyncClient à utiliser (tests: transport mocké)
    """
    settings = Settings.from_config(load_config(config_path))
    setup_logging(settings.log_level)

    registry = build_registry(settings.providers, settings.default_provider, credentials)
    proxy_client = create_proxy_client(timeout=settings.request_timeout, client=http_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Gestion du cycle de vie de l'application."""
        async with app.state.proxy_client:
            _startup(app)
            yield
        _shutdown(app)

    app = FastAPI(
        title="LLM Relay",
        description="Relais streaming multi-provider avec protocole SSE uniforme",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.proxy_client = proxy_client
    app.state.gateway = GatewaySession(
        registry,
        proxy_client,
        http_referer=settings.http_referer,
        app_title=settings.app_title
    )

    app.include_router(api_router)
    return app


def _startup(app: FastAPI):
    """Rapport de démarrage: clés chargées par provider."""
    registry: ProviderRegistry = app.state.registry
    logger.info("🚀 Démarrage de LLM Relay...")
    logger.info("--- Vérification des variables d'environnement ---")
    for tag, entry in registry.describe().items():
        loaded = "Oui" if entry["has_api_key"] else "Non"
        logger.info(f"  {tag:<16} {entry['auth_env_var']:<20} clé chargée: {loaded}")
    logger.info(f"✅ {len(registry.tags)} provider(s), défaut: {registry.default.tag}")


def _shutdown(app: FastAPI):
    """Arrêt de l'application (client upstream déjà fermé)."""
    logger.info("✅ Serveur arrêté proprement")
