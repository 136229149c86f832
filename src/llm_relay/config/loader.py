"""src.llm_relay.config.loader

Chargement de la configuration TOML.

Note d'architecture:
- Le package `config/` est consommé par la couche proxy.
- Il ne doit donc pas dépendre de `proxy/*` afin d'éviter les imports circulaires.
"""
import os
import re
import tomllib
from pathlib import Path
from typing import Dict, Any

from ..core.constants import DEFAULT_CONFIG_FILE, CONFIG_PATH_ENV_VAR
from ..core.exceptions import ConfigurationError

# Cache global de configuration, par chemin résolu
_config_cache: Dict[str, Dict[str, Any]] = {}

_ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')


def _expand_env_vars(obj: Any) -> Any:
    """
    Récursivement étend les variables d'environnement ${VAR} dans la config.

    Une variable absente de l'environnement est laissée telle quelle.
    """
    if isinstance(obj, str):
        def replace_env_var(match):
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))
        return _ENV_VAR_PATTERN.sub(replace_env_var, obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def _clear_config_cache():
    """Vide le cache de configuration."""
    _config_cache.clear()


def _default_config_path() -> str:
    # Structure: project/src/llm_relay/config/loader.py
    current_file = os.path.abspath(__file__)
    project_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(current_file))))
    return os.path.join(project_dir, DEFAULT_CONFIG_FILE)


def load_config(config_path: str = None) -> Dict[str, Any]:
    """
    Charge la configuration depuis config.toml.

    Ordre de résolution du chemin: argument, puis LLM_RELAY_CONFIG, puis
    config.toml à la racine du projet. Seul ce dernier est optionnel: sans
    lui, la configuration est vide et les providers intégrés s'appliquent.
    Le résultat est mis en cache par chemin.

    Raises:
        ConfigurationError: Si un fichier explicite n'existe pas ou est invalide
    """
    explicit = config_path or os.environ.get(CONFIG_PATH_ENV_VAR)
    path = Path(explicit or _default_config_path()).resolve()
    cache_key = str(path)

    if cache_key in _config_cache:
        return _config_cache[cache_key]

    if not path.exists():
        if explicit:
            raise ConfigurationError(
                message=f"Fichier de configuration non trouvé: {path}",
                config_key="config_path"
            )
        _config_cache[cache_key] = {}
        return _config_cache[cache_key]

    try:
        with open(path, "rb") as f:
            raw_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            message=f"Configuration TOML invalide ({path}): {e}",
            config_key="config_path"
        ) from e

    _config_cache[cache_key] = _expand_env_vars(raw_config)
    return _config_cache[cache_key]


def reload_config(config_path: str = None) -> Dict[str, Any]:
    """Recharge la configuration depuis le fichier."""
    _clear_config_cache()
    return load_config(config_path)


def init_providers(config: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Fusionne la table des providers intégrés avec la section [providers].

    Une entrée de config complète (ou remplace champ par champ) l'entrée
    intégrée de même tag.
    """
    from ..core.constants import BUILTIN_PROVIDERS

    providers = {tag: dict(data) for tag, data in BUILTIN_PROVIDERS.items()}
    providers_config = config.get("providers", {})

    for provider_key, provider_data in providers_config.items():
        if not isinstance(provider_data, dict):
            raise ConfigurationError(
                message=f"Section [providers.{provider_key}] invalide",
                config_key=f"providers.{provider_key}"
            )
        merged = providers.get(provider_key, {})
        merged.update(provider_data)
        providers[provider_key] = merged

    return providers


def get_gateway_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Extrait la section [gateway] avec les valeurs par défaut."""
    from ..core.constants import (
        DEFAULT_PROVIDER,
        DEFAULT_REQUEST_TIMEOUT,
        DEFAULT_HTTP_REFERER,
        DEFAULT_APP_TITLE,
    )

    gateway_config = config.get("gateway", {})
    return {
        "default_provider": gateway_config.get("default_provider", DEFAULT_PROVIDER),
        "request_timeout": float(gateway_config.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)),
        "http_referer": gateway_config.get("http_referer", DEFAULT_HTTP_REFERER),
        "app_title": gateway_config.get("app_title", DEFAULT_APP_TITLE),
        "log_level": gateway_config.get("log_level", os.getenv("LOG_LEVEL", "INFO")),
    }
