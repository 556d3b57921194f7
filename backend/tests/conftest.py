# backend/tests/conftest.py
import os
import sys
import pathlib
import tempfile
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

# -------------------------------------------------------------------------------------------------
# Path & environment setup (must happen BEFORE importing the app)
# -------------------------------------------------------------------------------------------------

# Ensure project root (backend/) is importable
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(pathlib.Path(tempfile.mkdtemp(prefix="assistant-test-"))))
os.environ.setdefault("CORS_ORIGINS", "http://localhost:3000")
os.environ.setdefault("TRANSCRIPTION_PROVIDER", "deepgram")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# -------------------------------------------------------------------------------------------------
# Import app & modules AFTER env vars
# -------------------------------------------------------------------------------------------------
from main import app
from api import deps
from ai.base import LLMBackend
from services.connection_registry import ConnectionRegistry
from services.orchestrator import InterviewOrchestrator
from services.provider_gateway import ProviderGateway
from services.question_detection import QuestionDetector
from services.session_store import SessionStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


# -------------------------------------------------------------------------------------------------
# Fakes (no network, no engines)
# -------------------------------------------------------------------------------------------------
class ScriptedBackend(LLMBackend):
    """Replays `replies` in order (the last one repeats). Exceptions are raised."""

    name = "scripted"
    requires_key = False

    def __init__(self, replies: Optional[List[Any]] = None):
        super().__init__()
        self.replies = list(replies or ["ok"])
        self.calls: List[Dict[str, Any]] = []
        self.gate = None  # asyncio.Event; when set on the instance, calls wait for it
        self.entered = None

    async def complete(self, system, prompt, model, max_tokens):
        self.calls.append({"system": system, "prompt": prompt, "model": model, "max_tokens": max_tokens})
        if self.entered is not None:
            self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeTranscriber:
    name = "fake"

    def __init__(self, text: str = "", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: List[bytes] = []

    async def transcribe(self, audio: bytes) -> str:
        self.calls.append(audio)
        if self.error:
            raise self.error
        return self.text


class FakeOCR:
    def __init__(self, text: str = "", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: List[tuple] = []

    async def extract_text(self, image: bytes, provider: str) -> str:
        self.calls.append((image, provider))
        if self.error:
            raise self.error
        return self.text


class Recorder:
    """Collects (event, data) pairs emitted by an orchestrator."""

    def __init__(self):
        self.events: List[tuple] = []

    async def __call__(self, event: str, data: Dict[str, Any]) -> None:
        self.events.append((event, data))

    def names(self) -> List[str]:
        return [e for e, _ in self.events]

    def of(self, name: str) -> List[Dict[str, Any]]:
        return [d for e, d in self.events if e == name]


class _NoSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# -------------------------------------------------------------------------------------------------
# Fixtures
# -------------------------------------------------------------------------------------------------
@pytest.fixture
def clock():
    """Strictly increasing epoch-ms clock so start_time ordering is deterministic."""
    state = {"now": 1_700_000_000_000}

    def _tick() -> int:
        state["now"] += 1000
        return state["now"]

    return _tick


@pytest.fixture
def store(tmp_path, clock):
    return SessionStore(str(tmp_path), max_sessions=50, clock=clock)


@pytest.fixture
def backend():
    return ScriptedBackend(["A binary search tree keeps keys ordered."])


@pytest.fixture
def no_sleep():
    return _NoSleep()


@pytest.fixture
def gateway(backend, no_sleep):
    return ProviderGateway({"openai": backend, "ollama": backend}, sleep=no_sleep)


@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def ocr():
    return FakeOCR()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_orchestrator(gateway, store, transcriber, ocr):
    def _make(emit, submit=None, **kw) -> InterviewOrchestrator:
        return InterviewOrchestrator(
            detector=QuestionDetector(),
            gateway=gateway,
            store=store,
            transcriber=transcriber,
            ocr=ocr,
            emit=emit,
            submit=submit,
            **kw,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator, recorder):
    return make_orchestrator(recorder)


@pytest.fixture
def registry(make_orchestrator):
    return ConnectionRegistry(lambda emit, submit: make_orchestrator(emit, submit))


# -------------------------------------------------------------------------------------------------
# TestClient
# -------------------------------------------------------------------------------------------------
@pytest.fixture
def client(registry, store):
    app.dependency_overrides[deps.get_registry] = lambda: registry
    app.dependency_overrides[deps.get_session_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(deps.get_registry, None)
        app.dependency_overrides.pop(deps.get_session_store, None)
