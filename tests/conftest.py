"""
Configuration des tests pytest.
"""
import json
import os
import sys

import httpx
import pytest

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from llm_relay.core.constants import BUILTIN_PROVIDERS  # noqa: E402
from llm_relay.proxy.client import ProxyClient  # noqa: E402
from llm_relay.proxy.router import build_registry  # noqa: E402
from llm_relay.proxy.session import GatewaySession  # noqa: E402


@pytest.fixture
def anyio_backend():
    """Les tests async tournent sur asyncio uniquement."""
    return "asyncio"


@pytest.fixture
def sample_messages():
    """Fixture pour des messages de test."""
    return [
        {"role": "system", "content": "Tu es un assistant utile."},
        {"role": "user", "content": "Bonjour, comment ça va?"},
        {"role": "assistant", "content": "Je vais bien, merci!"}
    ]


@pytest.fixture
def credentials():
    """Magasin de secrets de test (remplace os.environ)."""
    return {
        "OPENROUTER_API_KEY": "sk-or-test-key",
        "GEMINI_API_KEY": "gemini-test-key",
    }


@pytest.fixture
def providers_table():
    """Table des providers intégrés + un provider `acme` compatible OpenAI."""
    table = {tag: dict(data) for tag, data in BUILTIN_PROVIDERS.items()}
    table["acme"] = {
        "auth_env_var": "ACME_API_KEY",
        "endpoint": "https://api.acme.test/v1/chat/completions",
        "family": "openai",
        "response_shape": "sse-passthrough",
        "stream_flag": True,
        "auth": "bearer",
    }
    return table


@pytest.fixture
def registry(providers_table, credentials):
    return build_registry(providers_table, "openrouter", credentials)


class UpstreamRecorder:
    """
    Faux provider pour httpx.MockTransport.

    Enregistre les requêtes reçues et répond avec des chunks découpés
    à la main pour simuler le réseau.
    """

    def __init__(self, status_code=200, chunks=None, error=None):
        self.status_code = status_code
        self.chunks = chunks or []
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error

        chunks = list(self.chunks)

        async def body():
            for chunk in chunks:
                yield chunk

        return httpx.Response(self.status_code, content=body())

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def make_gateway(registry):
    """Construit une GatewaySession branchée sur un UpstreamRecorder."""
    def _make(upstream: UpstreamRecorder, gateway_registry=None):
        client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        return GatewaySession(gateway_registry or registry, ProxyClient(client=client))
    return _make


async def collect_frames(frames) -> list:
    """Concatène le stream SSE et le découpe en frames (sans ligne vide)."""
    raw = b""
    async for frame in frames:
        raw += frame
    return [f for f in raw.decode("utf-8").split("\n\n") if f]


def delta_texts(frames: list) -> list:
    """Textes des frames delta canoniques."""
    texts = []
    for frame in frames:
        if frame.startswith("data: {"):
            payload = json.loads(frame[len("data: "):])
            if "choices" in payload:
                texts.append(payload["choices"][0]["delta"]["content"])
    return texts


@pytest.fixture
def make_app(tmp_path, credentials, monkeypatch):
    """
    Construit l'application complète sur un config.toml temporaire,
    avec un provider simulé derrière httpx.MockTransport.
    """
    from llm_relay.config.loader import _clear_config_cache
    from llm_relay.main import create_app

    monkeypatch.delenv("LLM_RELAY_CONFIG", raising=False)

    def _make(upstream: UpstreamRecorder, config_text: str = ""):
        path = tmp_path / "config.toml"
        path.write_text(config_text, encoding="utf-8")
        _clear_config_cache()
        return create_app(
            config_path=str(path),
            credentials=credentials,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        )

    yield _make
    _clear_config_cache()
