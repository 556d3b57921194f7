# backend/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional, List
import json


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore unknown keys instead of crashing
        populate_by_name=True,
    )

    server_version: str = Field("1.0.0", alias="SERVER_VERSION")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # ---- Generation providers
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    ollama_url: str = Field("http://127.0.0.1:11434", alias="OLLAMA_URL")
    ollama_model: str = Field("tinyllama", alias="OLLAMA_MODEL")
    llm_timeout: float = Field(60.0, alias="LLM_TIMEOUT")

    # fixed provider/model pair used by the mock interview flow
    mock_provider: str = Field("openai", alias="MOCK_PROVIDER")
    mock_model: str = Field("gpt-4", alias="MOCK_MODEL")

    # ---- Transcription / OCR
    transcription_provider: str = Field("deepgram", alias="TRANSCRIPTION_PROVIDER")  # deepgram | whisper
    deepgram_api_key: Optional[str] = Field(default=None, alias="DEEPGRAM_API_KEY")
    whisper_model: str = Field("base", alias="WHISPER_MODEL")  # tiny|base|small|medium|large-v3
    google_vision_api_key: Optional[str] = Field(default=None, alias="GOOGLE_VISION_API_KEY")
    tesseract_cmd: str = Field("tesseract", alias="TESSERACT_CMD")

    # ---- Session history
    data_dir: str = Field("./data", alias="DATA_DIR")
    max_sessions: int = Field(50, alias="MAX_SESSIONS")

    # ---- CORS raw (we'll parse)
    cors_origins_raw: str = Field(
        "http://localhost:3000,http://127.0.0.1:3000",
        alias="CORS_ORIGINS",
    )

    # ---- Helpers / parsed properties
    @property
    def cors_origins(self) -> List[str]:
        s = (self.cors_origins_raw or "").strip()
        if not s:
            return ["http://localhost:3000", "http://127.0.0.1:3000"]
        if s.startswith("["):
            try:
                arr = json.loads(s)
                if isinstance(arr, list):
                    return [str(x).strip() for x in arr if str(x).strip()]
            except ValueError:
                pass
        return [x.strip() for x in s.split(",") if x.strip()]

    @property
    def configured_providers(self) -> List[str]:
        """Generation providers that can be called right now."""
        found = ["ollama"]
        if self.openai_api_key:
            found.append("openai")
        if self.anthropic_api_key:
            found.append("claude")
        if self.gemini_api_key:
            found.append("gemini")
        return found


settings = Settings()
