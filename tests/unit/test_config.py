"""
Tests unitaires pour le chargement de la configuration.
"""
import logging

import pytest

from llm_relay.config import loader
from llm_relay.config.loader import _expand_env_vars, init_providers, load_config, reload_config
from llm_relay.config.settings import Settings
from llm_relay.core.exceptions import ConfigurationError
from llm_relay.core.logging_setup import mask_secret, setup_logging


@pytest.fixture(autouse=True)
def clear_cache(monkeypatch):
    monkeypatch.delenv("LLM_RELAY_CONFIG", raising=False)
    loader._clear_config_cache()
    yield
    loader._clear_config_cache()


CONFIG_TOML = """
[gateway]
default_provider = "google"
request_timeout = 60
app_title = "${RELAY_TITLE}"

[providers.acme]
auth_env_var = "ACME_API_KEY"
endpoint = "https://api.acme.test/v1/chat/completions"
stream_flag = true

[providers.google]
timeout = 30
"""


def test_expand_env_vars(monkeypatch):
    monkeypatch.setenv("RELAY_TITLE", "mon-relais")
    monkeypatch.delenv("ABSENT_VAR", raising=False)
    data = {"a": "${RELAY_TITLE}", "b": ["x-${RELAY_TITLE}"], "c": "${ABSENT_VAR}", "d": 3}

    assert _expand_env_vars(data) == {
        "a": "mon-relais",
        "b": ["x-mon-relais"],
        "c": "${ABSENT_VAR}",
        "d": 3,
    }


def test_load_config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("RELAY_TITLE", "mon-relais")
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML, encoding="utf-8")

    config = load_config(str(path))

    assert config["gateway"]["default_provider"] == "google"
    assert config["gateway"]["app_title"] == "mon-relais"


def test_config_is_cached(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML, encoding="utf-8")

    first = load_config(str(path))
    path.write_text("", encoding="utf-8")

    assert load_config(str(path)) is first
    assert reload_config(str(path)) == {}


def test_cache_is_per_path(tmp_path):
    """Un second chemin explicite n'hérite jamais de la config du premier."""
    first = tmp_path / "a.toml"
    first.write_text('[gateway]\ndefault_provider = "google"\n', encoding="utf-8")
    second = tmp_path / "b.toml"
    second.write_text('[gateway]\ndefault_provider = "google-oneshot"\n', encoding="utf-8")

    assert load_config(str(first))["gateway"]["default_provider"] == "google"
    assert load_config(str(second))["gateway"]["default_provider"] == "google-oneshot"
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "nope.toml"))


def test_config_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "relay.toml"
    path.write_text('[gateway]\ndefault_provider = "google-oneshot"\n', encoding="utf-8")
    monkeypatch.setenv("LLM_RELAY_CONFIG", str(path))

    assert load_config()["gateway"]["default_provider"] == "google-oneshot"


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "absent.toml"))


def test_invalid_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[gateway\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_init_providers_merges_builtins():
    providers = init_providers({"providers": {"google": {"timeout": 30}, "acme": {"endpoint": "https://a.test"}}})

    assert providers["google"]["timeout"] == 30
    assert providers["google"]["response_shape"] == "buffered-json-stream"
    assert providers["acme"] == {"endpoint": "https://a.test"}
    assert "openrouter" in providers


def test_init_providers_rejects_bad_section():
    with pytest.raises(ConfigurationError):
        init_providers({"providers": {"acme": "https://a.test"}})


def test_settings_from_config(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML, encoding="utf-8")

    settings = Settings.from_config(load_config(str(path)))

    assert settings.default_provider == "google"
    assert settings.request_timeout == 60.0
    assert settings.get_provider("acme")["stream_flag"] is True
    assert settings.get_provider("inconnu") is None


def test_settings_defaults():
    settings = Settings.from_config({})
    assert settings.default_provider == "openrouter"
    assert set(settings.providers) == {"openrouter", "google", "google-oneshot"}


def test_setup_logging_level():
    logger = setup_logging("debug")
    assert logger.name == "llm_relay"
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1

    # Appel répété: pas de handler dupliqué
    assert len(setup_logging("NONE").handlers) == 1
    assert logger.level > logging.CRITICAL
    setup_logging("INFO")


@pytest.mark.parametrize("secret,expected", [
    ("sk-or-v1-abcdef123456", "sk-or-...3456"),
    ("court", "*****"),
    ("", ""),
    (None, ""),
])
def test_mask_secret(secret, expected):
    assert mask_secret(secret) == expected
