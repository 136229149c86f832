"""
Constantes globales pour LLM Relay.
"""

# ============================================================================
# CONFIGURATION PAR DÉFAUT
# ============================================================================
DEFAULT_PROVIDER = "openrouter"
DEFAULT_CONFIG_FILE = "config.toml"
CONFIG_PATH_ENV_VAR = "LLM_RELAY_CONFIG"
DEFAULT_REQUEST_TIMEOUT = 120.0  # secondes
CONNECT_TIMEOUT = 10.0
DEFAULT_HTTP_REFERER = "http://localhost"
DEFAULT_APP_TITLE = "llm-relay"
USER_AGENT = "LLM-Relay/1.0"

# ============================================================================
# FORMES DE RÉPONSE & FAMILLES
# ============================================================================
SHAPE_SSE_PASSTHROUGH = "sse-passthrough"
SHAPE_SINGLE_JSON = "single-json"
SHAPE_BUFFERED_JSON_STREAM = "buffered-json-stream"

RESPONSE_SHAPES = (
    SHAPE_SSE_PASSTHROUGH,
    SHAPE_SINGLE_JSON,
    SHAPE_BUFFERED_JSON_STREAM,
)

FAMILY_OPENAI = "openai"
FAMILY_GEMINI = "gemini"

AUTH_BEARER = "bearer"
AUTH_QUERY = "query"

# ============================================================================
# STREAM BUFFERISÉ (Gemini streamGenerateContent)
# ============================================================================
MAX_RECOVERY_ATTEMPTS = 3  # Tentatives de récupération consécutives avant abandon du buffer

# ============================================================================
# PROTOCOLE SSE SORTANT
# ============================================================================
SSE_DONE_PAYLOAD = "[DONE]"
SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no"  # Désactive buffering nginx
}

# ============================================================================
# PROVIDERS INTÉGRÉS
# ============================================================================
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

BUILTIN_PROVIDERS = {
    "openrouter": {
        "auth_env_var": "OPENROUTER_API_KEY",
        "endpoint": "https://openrouter.ai/api/v1/chat/completions",
        "family": FAMILY_OPENAI,
        "response_shape": SHAPE_SSE_PASSTHROUGH,
        "stream_flag": True,
        "auth": AUTH_BEARER,
        "timeout": 150.0,  # OpenRouter fait du routing
    },
    "google": {
        "auth_env_var": "GEMINI_API_KEY",
        "endpoint": GEMINI_BASE_URL + "/models/{model}:streamGenerateContent",
        "family": FAMILY_GEMINI,
        "response_shape": SHAPE_BUFFERED_JSON_STREAM,
        "stream_flag": False,
        "auth": AUTH_QUERY,
        "timeout": 180.0,  # Gemini peut être lent sur les gros contextes
    },
    "google-oneshot": {
        "auth_env_var": "GEMINI_API_KEY",
        "endpoint": GEMINI_BASE_URL + "/models/{model}:generateContent",
        "family": FAMILY_GEMINI,
        "response_shape": SHAPE_SINGLE_JSON,
        "stream_flag": False,
        "auth": AUTH_QUERY,
        "timeout": 180.0,
    },
}
