# backend/ai/anthropic_client.py
from ai.base import LLMBackend, ProviderResponseError

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicClient(LLMBackend):
    name = "claude"

    def build_request(self, system, prompt, model, max_tokens):
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        payload = {
            "model": model,
            "max_tokens": max_tokens,
            "system": system,
            "messages": [{"role": "user", "content": f"Question: {prompt}"}],
        }
        return ANTHROPIC_MESSAGES_URL, headers, payload

    def parse_response(self, body) -> str:
        block = body["content"][0]
        if block.get("type") != "text":
            raise ProviderResponseError(f"claude returned a {block.get('type')!r} block")
        return block["text"]
