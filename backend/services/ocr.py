# backend/services/ocr.py
import asyncio
import base64
import logging
from typing import Dict, Optional

import httpx

from core.config import Settings
from core.errors import OCRError

logger = logging.getLogger(__name__)

VISION_URL = "https://vision.googleapis.com/v1/images:annotate"


class TesseractOCR:
    """Runs the local tesseract binary: image on stdin, text on stdout."""

    name = "tesseract"

    def __init__(self, cmd: str = "tesseract", lang: str = "eng"):
        self.cmd = cmd
        self.lang = lang

    async def extract(self, image: bytes) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.cmd, "stdin", "stdout", "-l", self.lang,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise OCRError(f"tesseract not available: {e}") from e

        out, err = await proc.communicate(image)
        if proc.returncode != 0:
            raise OCRError(f"tesseract exited {proc.returncode}: {err.decode(errors='replace')[:200]}")
        return out.decode("utf-8", errors="replace").strip()


class GoogleVisionOCR:
    name = "google"

    def __init__(self, api_key: Optional[str], timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def extract(self, image: bytes) -> str:
        if not self.api_key:
            raise OCRError("Google Vision API key not configured")

        payload = {
            "requests": [
                {
                    "image": {"content": base64.b64encode(image).decode("ascii")},
                    "features": [{"type": "TEXT_DETECTION"}],
                }
            ]
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(VISION_URL, params={"key": self.api_key}, json=payload)
        except httpx.HTTPError as e:
            raise OCRError(f"Google Vision request failed: {e}") from e

        if resp.status_code >= 400:
            raise OCRError(f"Google Vision returned {resp.status_code}")

        try:
            annotations = resp.json()["responses"][0].get("textAnnotations") or []
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise OCRError("Google Vision returned an unexpected payload") from e
        if not annotations:
            return ""
        # first annotation holds the full text
        return (annotations[0].get("description") or "").strip()


class OCRService:
    def __init__(self, providers: Dict[str, object]):
        self.providers = providers

    async def extract_text(self, image: bytes, provider: str) -> str:
        engine = self.providers.get(provider)
        if engine is None:
            raise OCRError(f"Unknown OCR provider: {provider}")
        return await engine.extract(image)


def build_ocr_service(cfg: Settings) -> OCRService:
    return OCRService(
        {
            "tesseract": TesseractOCR(cmd=cfg.tesseract_cmd),
            "google": GoogleVisionOCR(api_key=cfg.google_vision_api_key),
        }
    )
