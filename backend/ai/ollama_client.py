# backend/ai/ollama_client.py
from typing import Any, Dict

from ai.base import LLMBackend

OLLAMA_GENERATE_PATH = "/api/generate"


class OllamaClient(LLMBackend):
    """
    Local Ollama /api/generate. No key needed; `model` falls back to the
    configured default when the caller passes an empty one.
    """

    name = "ollama"
    requires_key = False

    def __init__(self, base_url: str, default_model: str, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model

    def build_request(self, system, prompt, model, max_tokens):
        payload = {
            "model": model or self.default_model,
            "system": system,
            "prompt": prompt,
            "stream": False,
            # optionally tweak inference options here
            "options": {"temperature": 0.7, "num_predict": max_tokens},
        }
        return f"{self.base_url}{OLLAMA_GENERATE_PATH}", {}, payload

    def parse_response(self, body: Dict[str, Any]) -> str:
        # Common pattern: {"model": "...", "created_at": "...", "response": "...", "done": true}
        return body["response"]
