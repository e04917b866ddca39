import asyncio

import httpx
import pytest

from resume_curator import llm_gateway
from resume_curator.config import AIConfig, load_ai_config
from resume_curator.errors import CredentialInvalid, CredentialMissing, ProviderError, QuotaExceeded
from resume_curator.llm_gateway import LLMGateway


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


def install_fake_client(monkeypatch, response):
    """Replace httpx.AsyncClient inside the gateway; returns the capture dict."""
    captured = {}

    class FakeAsyncClient:
        def __init__(self, *args, **kwargs):
            captured["timeout"] = kwargs.get("timeout")

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def post(self, url, headers=None, json=None):
            captured.update(url=url, headers=headers, json=json)
            if isinstance(response, Exception):
                raise response
            return response

    monkeypatch.setattr(llm_gateway.httpx, "AsyncClient", FakeAsyncClient)
    return captured


def test_openai_request_shape_and_text(monkeypatch):
    captured = install_fake_client(
        monkeypatch, FakeResponse(body={"choices": [{"message": {"content": "Hello from mock"}}]})
    )
    gw = LLMGateway(AIConfig(provider="openai", api_key="sk-test", model="gpt-4o-mini"))

    text = asyncio.run(gw.complete("Say hi", 2000))

    assert text == "Hello from mock"
    assert captured["url"] == "https://api.openai.com/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer sk-test"
    assert captured["json"]["model"] == "gpt-4o-mini"
    assert captured["json"]["max_tokens"] == 2000
    assert captured["json"]["messages"] == [{"role": "user", "content": "Say hi"}]


def test_anthropic_request_shape_and_first_text_block(monkeypatch):
    body = {"content": [{"type": "tool_use", "id": "x"}, {"type": "text", "text": "Bonjour"}]}
    captured = install_fake_client(monkeypatch, FakeResponse(body=body))
    gw = LLMGateway(AIConfig(provider="anthropic", api_key="ak-test"))

    text = asyncio.run(gw.complete("Say hi", 4000))

    assert text == "Bonjour"
    assert captured["url"] == "https://api.anthropic.com/v1/messages"
    assert captured["headers"]["x-api-key"] == "ak-test"
    assert captured["json"]["model"] == "claude-3-opus-20240229"
    assert captured["json"]["max_tokens"] == 4000


def test_missing_credential_names_env_var():
    gw = LLMGateway(AIConfig(provider="anthropic", api_key=None))
    with pytest.raises(CredentialMissing) as exc:
        asyncio.run(gw.complete("hi", 10))
    assert exc.value.env_var == "ANTHROPIC_API_KEY"
    assert "ANTHROPIC_API_KEY" in exc.value.to_dict()["details"]


@pytest.mark.parametrize(
    "status,error_cls",
    [(401, CredentialInvalid), (429, QuotaExceeded), (500, ProviderError), (404, ProviderError)],
)
def test_status_codes_map_to_error_taxonomy(monkeypatch, status, error_cls):
    install_fake_client(monkeypatch, FakeResponse(status, body={"error": {"message": "nope"}}))
    gw = LLMGateway(AIConfig(provider="openai", api_key="sk-test"))
    with pytest.raises(error_cls) as exc:
        asyncio.run(gw.complete("hi", 10))
    assert exc.value.details == "nope"


def test_transport_error_becomes_provider_error(monkeypatch):
    install_fake_client(monkeypatch, httpx.ConnectError("connection refused"))
    gw = LLMGateway(AIConfig(provider="openai", api_key="sk-test"))
    with pytest.raises(ProviderError):
        asyncio.run(gw.complete("hi", 10))


def test_resume_budget_respects_constrained_models():
    assert LLMGateway(AIConfig(provider="anthropic", api_key="k", model="claude-3-haiku-20240307")).resume_token_budget() == 4096
    assert LLMGateway(AIConfig(provider="anthropic", api_key="k", model="claude-3-opus-20240229")).resume_token_budget() == 8000


def test_load_ai_config_prefers_provider_key(monkeypatch):
    monkeypatch.setenv("AI_PROVIDER", "anthropic")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "specific")
    monkeypatch.setenv("AI_API_KEY", "generic")
    monkeypatch.delenv("AI_MODEL", raising=False)
    cfg = load_ai_config()
    assert cfg.provider == "anthropic"
    assert cfg.api_key == "specific"
    assert cfg.model_id == "claude-3-opus-20240229"

    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    assert load_ai_config().api_key == "generic"


def test_load_ai_config_rejects_unknown_provider(monkeypatch):
    monkeypatch.setenv("AI_PROVIDER", "custom")
    with pytest.raises(ValueError):
        load_ai_config()


def test_two_gateways_with_independent_configs(monkeypatch):
    captured = install_fake_client(
        monkeypatch, FakeResponse(body={"choices": [{"message": {"content": "ok"}}]})
    )
    a = LLMGateway(AIConfig(provider="openai", api_key="key-a", base_url="http://a.local/v1/"))
    b = LLMGateway(AIConfig(provider="openai", api_key="key-b", base_url="http://b.local/v1"))
    asyncio.run(a.complete("x", 1))
    assert captured["url"] == "http://a.local/v1/chat/completions"
    asyncio.run(b.complete("x", 1))
    assert captured["url"] == "http://b.local/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer key-b"
