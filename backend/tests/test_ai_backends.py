# backend/tests/test_ai_backends.py
import json

import httpx
import pytest

from ai.anthropic_client import AnthropicClient
from ai.base import ProviderAuthError, ProviderError, ProviderRateLimitError, ProviderResponseError
from ai.gemini_client import GeminiClient
from ai.ollama_client import OllamaClient
from ai.openai_client import OpenAIClient

pytestmark = pytest.mark.anyio


def _transport(status=200, body=None, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=body if body is not None else {})

    return httpx.MockTransport(handler)


async def test_openai_parses_chat_completion():
    seen = []
    body = {"choices": [{"message": {"content": "Hello"}}]}
    client = OpenAIClient(api_key="sk-test", transport=_transport(body=body, seen=seen))

    text = await client.complete("sys", "What is REST?", "gpt-4", 500)

    assert text == "Hello"
    req = seen[0]
    assert req.headers["authorization"] == "Bearer sk-test"
    sent = json.loads(req.content)
    assert sent["max_tokens"] == 500
    assert sent["messages"][0] == {"role": "system", "content": "sys"}


@pytest.mark.parametrize(
    "status,exc",
    [(401, ProviderAuthError), (403, ProviderAuthError), (429, ProviderRateLimitError)],
)
async def test_status_mapping(status, exc):
    client = OpenAIClient(api_key="sk-test", transport=_transport(status=status, body={"error": "x"}))
    with pytest.raises(exc) as info:
        await client.complete("sys", "q", "gpt-4", 10)
    assert info.value.status_code == status


async def test_server_error_is_plain_provider_error():
    client = OpenAIClient(api_key="sk-test", transport=_transport(status=500, body={"error": "x"}))
    with pytest.raises(ProviderError) as info:
        await client.complete("sys", "q", "gpt-4", 10)
    assert type(info.value) is ProviderError


async def test_malformed_payload_is_response_error():
    client = OpenAIClient(api_key="sk-test", transport=_transport(body={"unexpected": True}))
    with pytest.raises(ProviderResponseError):
        await client.complete("sys", "q", "gpt-4", 10)


async def test_missing_key_fails_without_network():
    seen = []
    client = GeminiClient(api_key=None, transport=_transport(seen=seen))
    with pytest.raises(ProviderAuthError):
        await client.complete("sys", "q", "gemini-pro", 10)
    assert seen == []


async def test_anthropic_request_and_non_text_block():
    seen = []
    ok = AnthropicClient(
        api_key="ak",
        transport=_transport(body={"content": [{"type": "text", "text": "Hi"}]}, seen=seen),
    )
    assert await ok.complete("sys", "q", "claude-3", 100) == "Hi"
    assert seen[0].headers["x-api-key"] == "ak"
    assert seen[0].headers["anthropic-version"] == "2023-06-01"
    assert json.loads(seen[0].content)["messages"][0]["content"] == "Question: q"

    bad = AnthropicClient(api_key="ak", transport=_transport(body={"content": [{"type": "tool_use"}]}))
    with pytest.raises(ProviderResponseError):
        await bad.complete("sys", "q", "claude-3", 100)


async def test_gemini_joins_parts():
    seen = []
    body = {"candidates": [{"content": {"parts": [{"text": "a"}, {"text": "b"}]}}]}
    client = GeminiClient(api_key="gk", transport=_transport(body=body, seen=seen))
    assert await client.complete("sys", "q", "", 42) == "ab"
    assert seen[0].url.path.endswith("/gemini-pro:generateContent")
    assert json.loads(seen[0].content)["generationConfig"]["maxOutputTokens"] == 42


async def test_ollama_needs_no_key_and_uses_default_model():
    seen = []
    client = OllamaClient(
        base_url="http://ollama.local:11434/",
        default_model="tinyllama",
        transport=_transport(body={"response": "local answer"}, seen=seen),
    )
    assert await client.complete("sys", "q", "", 7) == "local answer"
    assert str(seen[0].url) == "http://ollama.local:11434/api/generate"
    sent = json.loads(seen[0].content)
    assert sent["model"] == "tinyllama"
    assert sent["options"]["num_predict"] == 7
