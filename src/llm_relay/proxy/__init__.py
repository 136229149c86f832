"""
Logique de relais HTTP vers les APIs LLM.
"""

from .router import ProviderRegistry, build_registry
from .transformers import (
    OpenAITransformer,
    GeminiTransformer,
    convert_to_gemini_format,
    build_endpoint,
    get_transformer,
)
from .stream import (
    StreamBuffer,
    SSEPassthroughNormalizer,
    SingleJSONNormalizer,
    BufferedJSONStreamNormalizer,
    create_normalizer,
)
from .sink import EventSink
from .client import create_proxy_client, ProxyClient
from .session import GatewaySession

__all__ = [
    "ProviderRegistry",
    "build_registry",
    "OpenAITransformer",
    "GeminiTransformer",
    "convert_to_gemini_format",
    "build_endpoint",
    "get_transformer",
    "StreamBuffer",
    "SSEPassthroughNormalizer",
    "SingleJSONNormalizer",
    "BufferedJSONStreamNormalizer",
    "create_normalizer",
    "EventSink",
    "create_proxy_client",
    "ProxyClient",
    "GatewaySession",
]
