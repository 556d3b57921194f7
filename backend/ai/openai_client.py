# backend/ai/openai_client.py
from ai.base import LLMBackend

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIClient(LLMBackend):
    name = "openai"

    def build_request(self, system, prompt, model, max_tokens):
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "max_tokens": max_tokens,
        }
        return OPENAI_CHAT_URL, headers, payload

    def parse_response(self, body) -> str:
        return body["choices"][0]["message"]["content"] or ""
