"""
Tests unitaires pour les dataclasses métier.
"""
import pytest

from llm_relay.core.exceptions import ConfigurationError, InvalidRequestError
from llm_relay.core.models import ChatRequest, Message, ProviderDescriptor, TerminalEvent


class TestChatRequest:

    def test_from_payload(self, sample_messages):
        request = ChatRequest.from_payload({"model": "google/gemini-pro", "messages": sample_messages})
        assert request.model_id == "google/gemini-pro"
        assert [m.role for m in request.messages] == ["system", "user", "assistant"]

    def test_model_id_alias(self):
        request = ChatRequest.from_payload({"modelId": "bar", "messages": [{"role": "user", "content": "x"}]})
        assert request.model_id == "bar"

    @pytest.mark.parametrize("payload", [
        None,
        [],
        {"messages": [{"role": "user", "content": "x"}]},
        {"model": "", "messages": [{"role": "user", "content": "x"}]},
        {"model": "bar"},
        {"model": "bar", "messages": []},
        {"model": "bar", "messages": "salut"},
    ])
    def test_invalid_payloads(self, payload):
        with pytest.raises(InvalidRequestError):
            ChatRequest.from_payload(payload)

    def test_unknown_role_rejected(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            ChatRequest.from_payload({"model": "bar", "messages": [{"role": "tool", "content": "x"}]})
        assert exc_info.value.details == {"field": "messages[0].role"}

    @pytest.mark.parametrize("content", ["", None, 42, [{"type": "text", "text": "x"}]])
    def test_content_must_be_non_empty_text(self, content):
        with pytest.raises(InvalidRequestError):
            Message.from_dict({"role": "user", "content": content})

    def test_extra_fields_dropped(self):
        message = Message.from_dict({"role": "user", "content": "x", "_masked": True, "name": "bob"})
        assert message.to_dict() == {"role": "user", "content": "x"}

    @pytest.mark.parametrize("role,content", [("tool", "x"), ("user", ""), ("assistant", None)])
    def test_direct_construction_validated(self, role, content):
        """Le jeu de rôles fermé tient aussi hors du body client."""
        with pytest.raises(InvalidRequestError):
            Message(role, content)

    def test_direct_construction_field(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            Message("tool", "x")
        assert exc_info.value.details == {"field": "message.role"}


class TestProviderDescriptor:

    def test_from_dict_defaults(self):
        descriptor = ProviderDescriptor.from_dict("my-llm", {"endpoint": "https://llm.test/v1/chat"})
        assert descriptor.auth_env_var == "MY_LLM_API_KEY"
        assert descriptor.response_shape == "sse-passthrough"
        assert descriptor.family == "openai"
        assert descriptor.auth_scheme == "bearer"
        assert descriptor.requires_streaming_flag_in_body is False

    def test_missing_endpoint(self):
        with pytest.raises(ConfigurationError):
            ProviderDescriptor.from_dict("x", {})

    @pytest.mark.parametrize("field,value", [
        ("response_shape", "xml"),
        ("family", "cohere"),
        ("auth", "basic"),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ConfigurationError):
            ProviderDescriptor.from_dict("x", {"endpoint": "https://x.test", field: value})

    def test_immutable(self):
        descriptor = ProviderDescriptor.from_dict("x", {"endpoint": "https://x.test"})
        with pytest.raises(AttributeError):
            descriptor.tag = "y"


def test_terminal_event():
    assert not TerminalEvent().is_error
    assert TerminalEvent(error_message="boom").is_error
