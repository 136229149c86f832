"""
Tests des routes HTTP (TestClient FastAPI, provider simulé).
"""
import json
import logging

import pytest
from fastapi.testclient import TestClient

from conftest import UpstreamRecorder, delta_texts

OPENAI_CHUNKS = [
    b'data: {"choices":[{"delta":{"content":"Salut"}}]}\n\n',
    b'data: {"choices":[{"delta":{"content":" toi"}}]}\n\ndata: [DONE]\n\n',
]


def frames_of(response):
    return [f for f in response.text.split("\n\n") if f]


@pytest.fixture
def upstream():
    return UpstreamRecorder(chunks=OPENAI_CHUNKS)


@pytest.fixture
def client(make_app, upstream):
    with TestClient(make_app(upstream)) as test_client:
        yield test_client


@pytest.mark.parametrize("path", ["/api/chat", "/chat/completions"])
def test_chat_streams_sse(client, upstream, path):
    response = client.post(path, json={
        "model": "openai/gpt-4o-mini",
        "messages": [{"role": "user", "content": "Salut"}],
    })

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    frames = frames_of(response)
    assert delta_texts(frames) == ["Salut", " toi"]
    assert frames[-1] == "data: [DONE]"
    assert frames.count("data: [DONE]") == 1
    assert upstream.last_json["model"] == "openai/gpt-4o-mini"


def test_chat_invalid_json_body(client, upstream):
    response = client.post(
        "/api/chat",
        content=b"{pas du json",
        headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 200
    frames = frames_of(response)
    assert frames[0].startswith("event: error")
    assert frames[1:] == ["data: [DONE]"]
    assert upstream.requests == []


def test_chat_missing_messages(client):
    frames = frames_of(client.post("/api/chat", json={"model": "bar"}))

    error = json.loads(frames[0].split("data: ", 1)[1])
    assert "messages" in error["message"]
    assert frames[-1] == "data: [DONE]"


def test_caller_identity_header(client, caplog, monkeypatch):
    # Le logger du package ne propage pas: caplog écoute la racine
    monkeypatch.setattr(logging.getLogger("llm_relay"), "propagate", True)
    caplog.set_level("INFO", logger="llm_relay")
    client.post(
        "/api/chat",
        json={"model": "bar", "messages": [{"role": "user", "content": "x"}]},
        headers={"X-Caller-Identity": "user-42"}
    )
    assert any("user-42" in record.getMessage() for record in caplog.records)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "default_provider": "openrouter", "providers": 3}


def test_providers_never_expose_keys(client):
    response = client.get("/api/providers")
    assert response.status_code == 200

    providers = response.json()
    assert [p["key"] for p in providers] == ["openrouter", "google", "google-oneshot"]
    assert all(p["has_api_key"] for p in providers)
    assert "sk-or-test-key" not in response.text
    assert "gemini-test-key" not in response.text


def test_config_overrides_default_provider(make_app):
    upstream = UpstreamRecorder(chunks=[b'{"candidates":[{"content":{"parts":[{"text":"ok"}]}}]}'])
    app = make_app(upstream, '[gateway]\ndefault_provider = "google-oneshot"\n')

    with TestClient(app) as test_client:
        response = test_client.post("/api/chat", json={
            "model": "gemini-1.5-flash",
            "messages": [{"role": "user", "content": "x"}],
        })
        health = test_client.get("/health").json()

    assert health["default_provider"] == "google-oneshot"
    assert delta_texts(frames_of(response)) == ["ok"]
    assert upstream.requests[0].url.path.endswith("gemini-1.5-flash:generateContent")


def test_lifespan_opens_and_closes_owned_client(tmp_path, monkeypatch):
    from llm_relay.config.loader import _clear_config_cache
    from llm_relay.main import create_app

    monkeypatch.delenv("LLM_RELAY_CONFIG", raising=False)
    path = tmp_path / "config.toml"
    path.write_text("", encoding="utf-8")
    _clear_config_cache()

    app = create_app(config_path=str(path), credentials={})
    proxy_client = app.state.proxy_client

    with TestClient(app):
        inner = proxy_client._client
        assert inner is not None
        assert not inner.is_closed

    assert inner.is_closed
    assert proxy_client._client is None
    _clear_config_cache()
