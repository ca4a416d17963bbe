import pytest

from agent_friend.providers import create_gateway
from agent_friend.providers.anthropic_client import AnthropicClient
from agent_friend.providers.registry import resolve_model


class DummySettings:
    anthropic_api_key = "k" * 12
    anthropic_base_url = "https://api.anthropic.com"
    anthropic_version = "2023-06-01"
    http_timeout = 1.0


def test_create_gateway_default():
    gateway = create_gateway(DummySettings())
    assert isinstance(gateway, AnthropicClient)
    assert gateway.name == "anthropic"


def test_create_gateway_unknown():
    with pytest.raises(KeyError):
        create_gateway(DummySettings(), "kimi")


def test_model_alias_lookup_is_case_insensitive():
    assert resolve_model("Chat").model_id.startswith("claude-")
    assert resolve_model("chat-fast").model_id != resolve_model("chat").model_id


def test_unknown_model_name_passes_through():
    model = resolve_model("claude-3-5-sonnet-20240620")
    assert model.model_id == "claude-3-5-sonnet-20240620"
    assert model.max_output_tokens > 0
