# backend/services/transcription.py
import asyncio
import logging
import os
import tempfile
import threading
from typing import Optional

import httpx

from core.config import Settings
from core.errors import TranscriptionError

logger = logging.getLogger(__name__)

DEEPGRAM_URL = "https://api.deepgram.com/v1/listen"
DEEPGRAM_PARAMS = {"model": "nova-2", "smart_format": "true", "language": "en"}
MIN_AUDIO_BYTES = 4000


class Transcriber:
    """bytes -> text. "" means nothing was recognised; failures raise TranscriptionError."""

    name = "base"

    async def transcribe(self, audio: bytes) -> str:
        raise NotImplementedError


class DeepgramTranscriber(Transcriber):
    name = "deepgram"

    def __init__(self, api_key: Optional[str], timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def transcribe(self, audio: bytes) -> str:
        if not self.api_key:
            raise TranscriptionError("Deepgram API key not configured")
        if not audio:
            return ""

        headers = {"Authorization": f"Token {self.api_key}", "Content-Type": "application/octet-stream"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(DEEPGRAM_URL, params=DEEPGRAM_PARAMS, headers=headers, content=audio)
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Deepgram request failed: {e}") from e

        if resp.status_code >= 400:
            raise TranscriptionError(f"Deepgram returned {resp.status_code}")

        try:
            body = resp.json()
            transcript = body["results"]["channels"][0]["alternatives"][0].get("transcript") or ""
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise TranscriptionError("Deepgram returned an unexpected payload") from e
        return transcript.strip()


class WhisperTranscriber(Transcriber):
    """Local faster-whisper. The model is loaded on first use and runs in a worker thread."""

    name = "whisper"

    def __init__(self, model_size: str = "base", device: str = "cpu", compute_type: str = "float32"):
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self._model = None
        self._load_lock = threading.Lock()

    def _load(self):
        with self._load_lock:
            if self._model is None:
                from faster_whisper import WhisperModel

                logger.info("Loading whisper model %s", self.model_size)
                self._model = WhisperModel(self.model_size, device=self.device, compute_type=self.compute_type)
        return self._model

    def _transcribe_sync(self, audio: bytes) -> str:
        model = self._load()
        fd, path = tempfile.mkstemp(suffix=".webm")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(audio)
            segments, _ = model.transcribe(
                path,
                language="en",
                beam_size=5,
                vad_filter=True,
                condition_on_previous_text=False,
                temperature=0.0,
            )
            return " ".join(seg.text.strip() for seg in segments).strip()
        finally:
            try:
                os.remove(path)
            except OSError:
                pass

    async def transcribe(self, audio: bytes) -> str:
        # too short to hold speech
        if not audio or len(audio) < MIN_AUDIO_BYTES:
            return ""
        try:
            return await asyncio.to_thread(self._transcribe_sync, audio)
        except Exception as e:
            raise TranscriptionError(f"Whisper transcription failed: {e}") from e


def build_transcriber(cfg: Settings) -> Transcriber:
    provider = (cfg.transcription_provider or "deepgram").lower()
    if provider == "whisper":
        return WhisperTranscriber(model_size=cfg.whisper_model)
    if provider != "deepgram":
        logger.warning("Unknown transcription provider %r, using deepgram", provider)
    return DeepgramTranscriber(api_key=cfg.deepgram_api_key)
