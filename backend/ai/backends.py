# backend/ai/backends.py
from typing import Dict

from ai.anthropic_client import AnthropicClient
from ai.base import LLMBackend
from ai.gemini_client import GeminiClient
from ai.ollama_client import OllamaClient
from ai.openai_client import OpenAIClient
from core.config import Settings


def build_backends(cfg: Settings) -> Dict[str, LLMBackend]:
    """Provider id -> backend. Adding a provider means adding one entry here."""
    return {
        "openai": OpenAIClient(api_key=cfg.openai_api_key, timeout=cfg.llm_timeout),
        "claude": AnthropicClient(api_key=cfg.anthropic_api_key, timeout=cfg.llm_timeout),
        "gemini": GeminiClient(api_key=cfg.gemini_api_key, timeout=cfg.llm_timeout),
        "ollama": OllamaClient(
            base_url=cfg.ollama_url,
            default_model=cfg.ollama_model,
            timeout=cfg.llm_timeout,
        ),
    }
