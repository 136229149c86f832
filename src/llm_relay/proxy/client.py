"""
Client HTTPX pour le relais avec timeouts configurables.

Pourquoi un client partagé:
- Le pool de connexions est réutilisé entre requêtes
- Chaque appel streamé est ouvert dans un `async with` qui libère la
  connexion quoi qu'il arrive (fin normale, erreur, déconnexion client)
- Pas de retry ici: la politique de retry appartient à l'appelant
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from ..core.constants import CONNECT_TIMEOUT, DEFAULT_REQUEST_TIMEOUT
from ..core.models import UpstreamCall

logger = logging.getLogger(__name__)


class ProxyClient:
    """
    Client HTTP vers les APIs LLM.

    Gère:
    - Timeouts par provider (read) et connect fixe
    - Limites du pool de connexions
    - Libération garantie des réponses streamées
    """

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client

    async def __aenter__(self) -> "ProxyClient":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def open(self) -> httpx.AsyncClient:
        if self._client is None:
            # Pourquoi ces limits: évite l'épuisement des connexions
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=CONNECT_TIMEOUT),
                limits=httpx.Limits(
                    max_keepalive_connections=20,
                    max_connections=50
                )
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def build_request(self, call: UpstreamCall, timeout: Optional[float] = None) -> httpx.Request:
        """Construit une requête HTTPX POST JSON."""
        client = self.open()
        return client.build_request(
            "POST",
            call.url,
            headers=call.headers,
            json=call.body,
            timeout=httpx.Timeout(timeout or self.timeout, connect=CONNECT_TIMEOUT)
        )

    @asynccontextmanager
    async def stream(
        self,
        call: UpstreamCall,
        timeout: Optional[float] = None,
        provider: str = ""
    ) -> AsyncIterator[httpx.Response]:
        """
        Ouvre un appel upstream en streaming.

        La réponse est fermée à la sortie du bloc, y compris sur exception
        ou annulation.
        """
        client = self.open()
        request = self.build_request(call, timeout)
        t0 = time.monotonic()
        response = await client.send(request, stream=True)
        try:
            elapsed_ms = (time.monotonic() - t0) * 1000
            logger.info(f"[CLIENT] {provider} status={response.status_code} ms={elapsed_ms:.1f}")
            yield response
        finally:
            await response.aclose()


def create_proxy_client(
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None
) -> ProxyClient:
    """
    Crée un client proxy.

    Args:
        timeout: Timeout de lecture par défaut en secondes
        client: AsyncClient existant (tests: transport mocké)
    """
    return ProxyClient(timeout=timeout, client=client)
