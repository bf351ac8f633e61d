import pytest
import requests
from langchain_anthropic import ChatAnthropic

from smartroute.llm import (
    AnthropicClient,
    DeepSeekClient,
    OpenAIClient,
    QuotaExceededError,
    get_llm_client,
)
from smartroute.llm import base
from smartroute.llm.chat_models import build_chat_model
from smartroute.settings import Settings


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def _capture(monkeypatch, response):
    sent = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        sent.update(url=url, json=json, headers=headers, timeout=timeout)
        return response

    monkeypatch.setattr(base.requests, "post", fake_post)
    return sent


def test_openai_invoke_sends_single_user_message(monkeypatch):
    sent = _capture(monkeypatch, FakeResponse(payload={"choices": [{"message": {"content": " hi \n"}}]}))
    client = OpenAIClient(api_key="sk-test", model="gpt-4o-mini", temperature=0.3)

    assert client.invoke("hello") == "hi"
    assert sent["url"] == "https://api.openai.com/v1/chat/completions"
    assert sent["json"]["messages"] == [{"role": "user", "content": "hello"}]
    assert sent["json"]["temperature"] == 0.3
    assert sent["headers"]["Authorization"] == "Bearer sk-test"


def test_openai_429_raises_quota_error(monkeypatch):
    _capture(monkeypatch, FakeResponse(status_code=429, text="Rate limit"))
    client = OpenAIClient(api_key="sk-test", model="gpt-4o-mini")
    with pytest.raises(QuotaExceededError):
        client.invoke("hello")


def test_insufficient_quota_body_raises_quota_error(monkeypatch):
    body = '{"error": {"code": "insufficient_quota"}}'
    _capture(monkeypatch, FakeResponse(status_code=400, text=body))
    with pytest.raises(QuotaExceededError):
        OpenAIClient(api_key="sk-test", model="gpt-4o").invoke("hello")


def test_other_http_errors_are_not_quota(monkeypatch):
    _capture(monkeypatch, FakeResponse(status_code=500, text="boom"))
    with pytest.raises(requests.HTTPError):
        OpenAIClient(api_key="sk-test", model="gpt-4o").invoke("hello")


def test_o_series_drops_system_messages(monkeypatch):
    sent = _capture(monkeypatch, FakeResponse(payload={"choices": [{"message": {"content": "ok"}}]}))
    OpenAIClient(api_key="sk-test", model="o3-mini").chat(
        [{"role": "system", "content": "sys"}, {"role": "user", "content": "q"}]
    )
    assert sent["json"]["messages"] == [{"role": "user", "content": "q"}]
    assert sent["json"]["temperature"] == 1.0


def test_anthropic_lifts_system_prompt(monkeypatch):
    sent = _capture(monkeypatch, FakeResponse(payload={"content": [{"text": "a"}, {"text": "b"}]}))
    reply = AnthropicClient(api_key="key", model="claude-3-5-sonnet-20241022").chat(
        [{"role": "system", "content": "be nice"}, {"role": "user", "content": "q"}]
    )
    assert reply == "ab"
    assert sent["json"]["system"] == "be nice"
    assert sent["json"]["messages"] == [{"role": "user", "content": "q"}]


def test_missing_keys_raise():
    with pytest.raises(RuntimeError):
        OpenAIClient(api_key=None, model="gpt-4o")
    with pytest.raises(RuntimeError):
        AnthropicClient(api_key="", model="claude")


def test_factory_picks_provider_and_model(monkeypatch):
    monkeypatch.delenv("OPENAI_MODEL", raising=False)
    client = get_llm_client(Settings(provider="openai", api_key="sk-generic"))
    assert isinstance(client, OpenAIClient)
    assert client.model == "gpt-4o-mini"
    assert client.api_key == "sk-generic"

    client = get_llm_client(Settings(provider="deepseek", deepseek_api_key="ds", custom_model="deepseek-reasoner"))
    assert isinstance(client, DeepSeekClient)
    assert client.model == "deepseek-reasoner"

    client = get_llm_client(Settings(provider="Claude", anthropic_api_key="ak"), timeout=5)
    assert isinstance(client, AnthropicClient)
    assert client.timeout == 5


def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError):
        get_llm_client(Settings(provider="mystery", api_key="k"))


def test_chat_model_for_openai_falls_back_to_default_model():
    model = build_chat_model(Settings(provider="openai", openai_api_key="sk-test", model="o3-mini"), default_model="gpt-4o")
    assert model.model_name == "gpt-4o"


def test_chat_model_for_anthropic_supports_tools():
    model = build_chat_model(Settings(provider="anthropic", anthropic_api_key="ak"), default_model="gpt-4o")
    assert isinstance(model, ChatAnthropic)
    assert model.model == "claude-3-5-sonnet-20241022"
    assert hasattr(model, "bind_tools")

    model = build_chat_model(Settings(provider="Claude", anthropic_api_key="ak", model="claude-3-5-haiku-20241022"))
    assert model.model == "claude-3-5-haiku-20241022"


def test_chat_model_rejects_unknown_provider():
    with pytest.raises(ValueError):
        build_chat_model(Settings(provider="mystery", api_key="k"))


def test_empty_choices_raise(monkeypatch):
    _capture(monkeypatch, FakeResponse(payload={"choices": []}))
    with pytest.raises(RuntimeError):
        OpenAIClient(api_key="sk-test", model="gpt-4o").invoke("hello")
