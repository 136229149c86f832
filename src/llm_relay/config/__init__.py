"""
Configuration de LLM Relay.
"""

from .loader import load_config, reload_config
from .settings import Settings

__all__ = [
    "load_config",
    "reload_config",
    "Settings",
]
