from types import SimpleNamespace

import litellm
import pytest

from llmcmd.config_loader import LLMClientConfig, LLMClientsConfig
from llmcmd.router import Router, UsageCollector, _build_kwargs, _model_name


def fake_response(content, prompt_tokens=10, completion_tokens=5):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


@pytest.fixture
def calls(monkeypatch):
    recorded = []

    def completion(**kwargs):
        recorded.append(kwargs)
        return fake_response('{"summary": "ok"}')

    monkeypatch.setattr(litellm, "completion", completion)
    monkeypatch.setattr(litellm, "completion_cost", lambda completion_response: 0.002)
    return recorded


@pytest.mark.parametrize("provider,model,expected", [
    ("openai", "gpt-4o", "openai/gpt-4o"),
    ("anthropic", "claude-sonnet-4", "anthropic/claude-sonnet-4"),
    ("google-ai", "gemini-2.0-flash", "gemini/gemini-2.0-flash"),
    ("aws-bedrock", "anthropic.claude-v2", "bedrock/anthropic.claude-v2"),
    ("openai", "openai/gpt-4o", "openai/gpt-4o"),
    ("mistral", "mistral-large", "mistral/mistral-large"),
])
def test_model_name_prefix(provider, model, expected):
    assert _model_name(LLMClientConfig(provider=provider, options={"model": model})) == expected


def test_model_name_requires_model():
    with pytest.raises(ValueError, match="no model"):
        _model_name(LLMClientConfig(provider="openai"))


def test_build_kwargs_maps_options(monkeypatch):
    monkeypatch.setenv("MY_KEY", "secret")
    client = LLMClientConfig(provider="openai-generic", options={
        "model": "llama3", "api_key": "env.MY_KEY", "base_url": "http://localhost:8080/v1",
        "temperature": 0.2, "headers": {"x": "y"},
    })

    kwargs = _build_kwargs(client, [{"role": "user", "content": "hi"}], {"type": "json_object"})

    assert kwargs["model"] == "openai/llama3"
    assert kwargs["api_key"] == "secret"
    assert kwargs["api_base"] == "http://localhost:8080/v1"
    assert kwargs["temperature"] == 0.2
    assert kwargs["response_format"] == {"type": "json_object"}
    assert "headers" not in kwargs


def test_complete_routes_by_role(calls, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-run")
    router = Router(LLMClientsConfig())

    small = router.complete("small", [{"role": "user", "content": "plan"}])
    router.complete("large", [{"role": "user", "content": "do"}])

    assert [c["model"] for c in calls] == ["openai/gpt-4o-mini", "openai/gpt-4o"]
    assert calls[0]["api_key"] == "sk-run"
    assert small.content == '{"summary": "ok"}'
    assert small.tokens_used == 15


def test_usage_flows_to_collector_and_total(calls):
    router = Router(LLMClientsConfig())
    collector = UsageCollector("command:lint")

    router.complete("large", [{"role": "user", "content": "x"}], collector=collector)
    router.complete("small", [{"role": "user", "content": "y"}])

    assert collector.usage.call_count == 1
    assert collector.usage.total_tokens == 15
    assert router.total.summary()["call_count"] == 2
    assert router.total.summary()["estimated_cost"] == 0.004
    assert str(collector) == "in=10 out=5 total=15 cost=$0.0020"


def test_unknown_role():
    with pytest.raises(ValueError, match="Unknown client role"):
        Router(LLMClientsConfig()).resolve_client("medium")
