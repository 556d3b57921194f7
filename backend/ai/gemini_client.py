# backend/ai/gemini_client.py
from ai.base import LLMBackend

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
GEMINI_DEFAULT_MODEL = "gemini-pro"


class GeminiClient(LLMBackend):
    name = "gemini"

    def build_request(self, system, prompt, model, max_tokens):
        url = f"{GEMINI_BASE_URL}/{model or GEMINI_DEFAULT_MODEL}:generateContent"
        headers = {"x-goog-api-key": self.api_key}
        payload = {
            "contents": [{"role": "user", "parts": [{"text": f"{system}\n\nQuestion: {prompt}"}]}],
            "generationConfig": {"maxOutputTokens": max_tokens, "temperature": 0.7},
        }
        return url, headers, payload

    def parse_response(self, body) -> str:
        parts = body["candidates"][0]["content"]["parts"]
        return "".join(p["text"] for p in parts)
