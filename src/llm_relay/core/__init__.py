"""
Cœur métier de LLM Relay.
Modules indépendants sans dépendances externes au package.
"""

from .exceptions import (
    RelayError,
    ConfigurationError,
    InvalidRequestError,
    UpstreamError,
    MalformedUpstreamData,
)
from .constants import (
    DEFAULT_PROVIDER,
    MAX_RECOVERY_ATTEMPTS,
    BUILTIN_PROVIDERS,
    SHAPE_SSE_PASSTHROUGH,
    SHAPE_SINGLE_JSON,
    SHAPE_BUFFERED_JSON_STREAM,
)
from .models import (
    Message,
    ChatRequest,
    ProviderDescriptor,
    NormalizedDelta,
    RawFrame,
    TerminalEvent,
    UpstreamCall,
)
from .logging_setup import setup_logging, mask_secret

__all__ = [
    # Exceptions
    "RelayError",
    "ConfigurationError",
    "InvalidRequestError",
    "UpstreamError",
    "MalformedUpstreamData",
    # Constants
    "DEFAULT_PROVIDER",
    "MAX_RECOVERY_ATTEMPTS",
    "BUILTIN_PROVIDERS",
    "SHAPE_SSE_PASSTHROUGH",
    "SHAPE_SINGLE_JSON",
    "SHAPE_BUFFERED_JSON_STREAM",
    # Models
    "Message",
    "ChatRequest",
    "ProviderDescriptor",
    "NormalizedDelta",
    "RawFrame",
    "TerminalEvent",
    "UpstreamCall",
    # Logging
    "setup_logging",
    "mask_secret",
]
