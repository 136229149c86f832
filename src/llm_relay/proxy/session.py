"""
Orchestration d'une requête de chat, du routing jusqu'au terminal SSE.
"""
import json
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Optional

import httpx

from ..core.exceptions import RelayError, InvalidRequestError, UpstreamError
from ..core.logging_setup import mask_secret
from ..core.models import ChatRequest, ProviderDescriptor, TerminalEvent
from .client import ProxyClient
from .router import ProviderRegistry
from .sink import EventSink
from .stream import StreamItem, create_normalizer
from .transformers import get_transformer

logger = logging.getLogger(__name__)


def extract_upstream_error(body: bytes, provider: str, status_code: int) -> str:
    """
    Message d'erreur du provider (`error.message`) ou description générique.

    Gemini renvoie parfois l'erreur dans un tableau: `[{"error": {...}}]`.
    """
    try:
        data = json.loads(body)
    except ValueError:
        data = None

    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
            return error["message"]
        if isinstance(error, str) and error:
            return error

    return f"{provider} upstream returned HTTP {status_code}"


class GatewaySession:
    """
    Relais d'une requête vers son provider.

    handle() produit les frames SSE au fil de l'eau et se termine toujours
    par exactement un `data: [DONE]`, précédé d'au plus une frame d'erreur.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        client: ProxyClient,
        http_referer: Optional[str] = None,
        app_title: Optional[str] = None
    ):
        self.registry = registry
        self.client = client
        self.http_referer = http_referer
        self.app_title = app_title

    async def handle_payload(self, caller_identity: str, payload: Any) -> AsyncIterator[bytes]:
        """Valide un body JSON brut puis délègue à handle()."""
        try:
            request = ChatRequest.from_payload(payload)
        except InvalidRequestError as e:
            logger.warning(f"[PROXY] Requête invalide de {caller_identity}: {e.message}")
            for frame in EventSink().terminate(TerminalEvent(error_message=e.message)):
                yield frame
            return

        async with aclosing(self.handle(caller_identity, request)) as frames:
            async for frame in frames:
                yield frame

    async def handle(self, caller_identity: str, request: ChatRequest) -> AsyncIterator[bytes]:
        sink = EventSink()
        error_message = None

        try:
            async with aclosing(self._relay(caller_identity, request)) as items:
                async for item in items:
                    yield sink.write(item)
        except RelayError as e:
            error_message = e.message
            logger.warning(f"[PROXY] {caller_identity} → {request.model_id}: {e}")
        except Exception as e:
            # Toute erreur pendant le drainage devient une frame d'erreur
            error_message = str(e) or type(e).__name__
            logger.exception(f"[PROXY] Erreur inattendue pour {request.model_id}")

        terminal_frames = sink.terminate(TerminalEvent(error_message=error_message))
        logger.debug(f"[PROXY] {caller_identity} → {request.model_id}: {sink.frames_written} frame(s) émise(s)")
        for frame in terminal_frames:
            yield frame

    async def _relay(self, caller_identity: str, request: ChatRequest) -> AsyncIterator[StreamItem]:
        descriptor, upstream_model = self.registry.resolve(request.model_id)
        # Avant tout appel réseau
        api_key = self.registry.resolve_credential(descriptor)
        logger.debug(f"[PROXY] {descriptor.auth_env_var}={mask_secret(api_key)}")

        transformer = get_transformer(
            descriptor.family,
            http_referer=self.http_referer,
            app_title=self.app_title
        )
        call = transformer.build(request, descriptor, upstream_model, api_key)
        normalizer = create_normalizer(descriptor)

        logger.info(
            f"[PROXY] {caller_identity} → {descriptor.tag} ({descriptor.response_shape}): "
            f"model={upstream_model}, messages={len(request.messages)}"
        )

        try:
            async with self.client.stream(call, timeout=descriptor.timeout, provider=descriptor.tag) as response:
                if not response.is_success:
                    body = await response.aread()
                    raise UpstreamError(
                        extract_upstream_error(body, descriptor.tag, response.status_code),
                        provider=descriptor.tag,
                        status_code=response.status_code
                    )

                async for chunk in response.aiter_bytes():
                    for item in normalizer.feed(chunk):
                        yield item

                for item in normalizer.close():
                    yield item
        except httpx.HTTPError as e:
            error = _transport_error(descriptor, e)
            normalizer.fail(error.message)
            raise error from e
        except RelayError as e:
            normalizer.fail(e.message)
            raise


def _transport_error(descriptor: ProviderDescriptor, error: httpx.HTTPError) -> UpstreamError:
    if isinstance(error, httpx.TimeoutException):
        message = f"Timeout lors de l'appel à {descriptor.tag}"
    elif isinstance(error, httpx.ConnectError):
        message = f"Impossible de se connecter à {descriptor.tag}"
    elif isinstance(error, httpx.ReadError):
        message = f"Connexion interrompue par {descriptor.tag}"
    else:
        # Pas de str(error): l'URL Gemini porte la clé API
        message = f"Erreur de transport vers {descriptor.tag} ({type(error).__name__})"
    return UpstreamError(message, provider=descriptor.tag)
