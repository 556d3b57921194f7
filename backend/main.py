# backend/main.py
import os
import sys
import logging
from dotenv import load_dotenv

logging.basicConfig(stream=sys.stdout, level=logging.INFO)
_log = logging.getLogger("env_loader")

# Candidate .env locations (in order)
#  - PROJECT_ROOT/.env
#  - BACKEND_DIR/.env
#  - current working directory .env
BASE_DIR = os.path.dirname(os.path.abspath(__file__))        # backend/
PROJECT_ROOT = os.path.dirname(BASE_DIR)                     # project root (parent of backend)
CWD = os.getcwd()

cand_paths = [
    os.path.join(PROJECT_ROOT, ".env"),
    os.path.join(BASE_DIR, ".env"),
    os.path.join(CWD, ".env"),
]

loaded_from = None
for p in cand_paths:
    if os.path.exists(p):
        load_dotenv(p, override=False)
        loaded_from = p
        _log.info("Loaded .env from: %s", p)
        break

# Fallback: load_dotenv() searches CWD + parents
if not loaded_from:
    load_dotenv(override=False)
# ---------------------------------------------------------

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import ops as ops_router
from api import sessions as sessions_router
from api import ws_assistant
from core.config import settings
from core.logging import setup_json_logging
from core.request_id import RequestIDMiddleware

setup_json_logging(settings.log_level)
log = logging.getLogger(__name__)

TRANSCRIPTION_KEYS = {"deepgram": "deepgram_api_key"}


def warn_missing_keys() -> None:
    if settings.configured_providers == ["ollama"]:
        log.warning("No hosted generation provider key configured; only ollama is usable")
    key_attr = TRANSCRIPTION_KEYS.get(settings.transcription_provider.lower())
    if key_attr and not getattr(settings, key_attr):
        log.warning(
            "Transcription provider %s selected but its API key is missing",
            settings.transcription_provider,
        )


app = FastAPI(title="Interview Assistant API", version=settings.server_version)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ws_assistant.router)
app.include_router(sessions_router.router)
app.include_router(ops_router.router)

warn_missing_keys()


@app.get("/")
def root():
    return {"name": "Interview Assistant API", "version": settings.server_version, "status": "running"}


@app.get("/health")
def health():
    return {"ok": True, "version": settings.server_version}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "3001")), reload=False)
