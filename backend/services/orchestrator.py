# backend/services/orchestrator.py
"""
Per-connection interview state machine.

One InterviewOrchestrator exists per live connection. Its `handle` coroutine
is only ever driven from that connection's ordered worker (see
services/connection_registry.py), so handlers never overlap and state changes
need no locking. Provider calls, transcription, OCR and store writes are the
only suspension points.

States: idle -> listening <-> paused, and mock-active which borrows the same
channel. Ambient audio/screen events are processed in idle and listening only.
"""
import asyncio
import base64
import binascii
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from pydantic import ValidationError

from core.errors import ErrorCode, GatewayError, GenerationFailed, severity_for
from schemas.events import (
    AudioStreamIn,
    ConfigUpdateIn,
    ExportSessionsIn,
    GenerateAnswerIn,
    MockAnswerIn,
    MockFeedbackIn,
    ScreenshotIn,
    SessionHistoryIn,
    StartMockInterviewIn,
)
from schemas.session import UserContext, WireModel
from services.provider_gateway import ProviderGateway
from services.question_detection import QuestionDetector
from services.session_store import SessionStore, export_filename, make_question_answer, now_ms

log = logging.getLogger(__name__)

Emit = Callable[[str, Dict[str, Any]], Awaitable[None]]
Work = Callable[[], Awaitable[None]]
Submit = Callable[[Work], Any]


class ConnectionStatus(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    PAUSED = "paused"
    MOCK_ACTIVE = "mock-active"


@dataclass
class MockState:
    difficulty: str
    question_types: List[str]
    context: Optional[UserContext] = None
    interval: Optional[float] = None
    started_at: float = 0.0
    questions: List[str] = field(default_factory=list)
    answers: List[str] = field(default_factory=list)
    timer: Optional[asyncio.TimerHandle] = None
    # bumped whenever the timer is cancelled so already-queued advances go stale
    timer_token: int = 0


@dataclass
class ConnectionState:
    session_id: Optional[str] = None
    listening: bool = True
    started: bool = False
    history_enabled: bool = True
    mock: Optional[MockState] = None
    closed: bool = False

    @property
    def mode(self) -> str:
        return "mock" if self.mock is not None else "normal"

    @property
    def status(self) -> ConnectionStatus:
        if self.mock is not None:
            return ConnectionStatus.MOCK_ACTIVE
        if not self.listening:
            return ConnectionStatus.PAUSED
        if self.started:
            return ConnectionStatus.LISTENING
        return ConnectionStatus.IDLE


class InterviewOrchestrator:
    def __init__(
        self,
        *,
        detector: QuestionDetector,
        gateway: ProviderGateway,
        store: SessionStore,
        transcriber,
        ocr,
        emit: Emit,
        submit: Optional[Submit] = None,
        mock_provider: str = "openai",
        mock_model: str = "gpt-4",
        server_version: str = "1.0.0",
        rng: Optional[random.Random] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.detector = detector
        self.gateway = gateway
        self.store = store
        self.transcriber = transcriber
        self.ocr = ocr
        self._send = emit
        self._submit = submit
        self.mock_provider = mock_provider
        self.mock_model = mock_model
        self.server_version = server_version
        self._rng = rng or random.Random()
        self._monotonic = monotonic
        self.state = ConnectionState()

        self._handlers: Dict[str, Tuple[Optional[Type[WireModel]], Callable[..., Awaitable[None]]]] = {
            "audio-stream": (AudioStreamIn, self._on_audio_stream),
            "screenshot": (ScreenshotIn, self._on_screenshot),
            "generate-answer": (GenerateAnswerIn, self._on_generate_answer),
            "start-mock-interview": (StartMockInterviewIn, self._on_start_mock),
            "mock-next-question": (None, self._on_mock_next),
            "mock-answer": (MockAnswerIn, self._on_mock_answer),
            "stop-mock-interview": (None, self._on_stop_mock),
            "request-mock-feedback": (MockFeedbackIn, self._on_mock_feedback),
            "get-session-history": (SessionHistoryIn, self._on_session_history),
            "export-sessions": (ExportSessionsIn, self._on_export_sessions),
            "pause-listening": (None, self._on_pause),
            "resume-listening": (None, self._on_resume),
            "config-update": (ConfigUpdateIn, self._on_config_update),
            "ping": (None, self._on_ping),
        }

    @property
    def status(self) -> ConnectionStatus:
        return self.state.status

    # ------------------------------
    # Lifecycle
    # ------------------------------
    async def open(self) -> None:
        session = await asyncio.to_thread(self.store.create)
        self.state.session_id = session.id
        if self.state.closed:
            # disconnected while the session was being created
            await asyncio.to_thread(self.store.close, session.id)
            return
        log.info("Connection opened", extra={"session_id": session.id})
        await self._emit(
            "connected",
            {"sessionId": session.id, "serverVersion": self.server_version},
        )

    async def close(self) -> None:
        """Idempotent. After this nothing is emitted and nothing is appended."""
        if self.state.closed:
            return
        self.state.closed = True
        if self.state.mock is not None:
            self._cancel_timer(self.state.mock)
            self.state.mock = None
        session_id = self.state.session_id
        if session_id:
            await asyncio.to_thread(self.store.close, session_id)
        log.info("Connection closed", extra={"session_id": session_id})

    # ------------------------------
    # Dispatch
    # ------------------------------
    async def handle(self, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        if self.state.closed:
            return
        log.debug("Inbound event %s", event, extra={"event": event, "status": self.status.value})

        entry = self._handlers.get(event)
        if entry is None:
            await self.reject(f"Unknown event: {event}")
            return

        model, handler = entry
        if model is None:
            await handler()
            return
        try:
            msg = model.model_validate(payload or {})
        except ValidationError as e:
            errs = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}" for err in e.errors()
            )
            await self.reject(f"Invalid {event} payload: {errs}")
            return
        await handler(msg)

    async def reject(self, message: str) -> None:
        await self._error(ErrorCode.INVALID_REQUEST, message)

    # ------------------------------
    # Outbound helpers
    # ------------------------------
    async def _emit(self, event: str, data: Dict[str, Any]) -> None:
        if self.state.closed:
            log.debug("Dropping %s for closed connection", event)
            return
        data.setdefault("timestamp", now_ms())
        await self._send(event, data)

    async def _status(self, status: str, message: str) -> None:
        await self._emit("status-update", {"status": status, "message": message})

    async def _error(self, code: ErrorCode, message: str) -> None:
        await self._emit(
            "error",
            {"code": code.value, "message": message, "severity": severity_for(code).value},
        )

    def _ambient_open(self) -> bool:
        return self.state.mock is None and self.state.listening

    # ------------------------------
    # Ambient pipeline
    # ------------------------------
    async def _on_audio_stream(self, msg: AudioStreamIn) -> None:
        if not self._ambient_open():
            log.debug("audio-stream dropped while %s", self.status.value)
            return
        try:
            audio = base64.b64decode(msg.audio_buffer, validate=True)
        except (binascii.Error, ValueError):
            await self.reject("audioBuffer is not valid base64")
            return

        await self._status("processing", "Transcribing audio...")
        try:
            text = await self.transcriber.transcribe(audio)
        except Exception:
            log.exception("Transcription failed")
            await self._error(ErrorCode.TRANSCRIPTION_FAILED, "Failed to transcribe audio")
            return

        if not text:
            return
        await self._emit("transcription-result", {"text": text, "isPartial": False})

        detection = self.detector.score(text)
        if detection.is_question and detection.question:
            await self._emit(
                "question-detected",
                {"question": detection.question, "source": "audio", "confidence": detection.confidence},
            )

    async def _on_screenshot(self, msg: ScreenshotIn) -> None:
        if not self._ambient_open():
            log.debug("screenshot dropped while %s", self.status.value)
            return
        try:
            image = base64.b64decode(msg.image_buffer, validate=True)
        except (binascii.Error, ValueError):
            await self.reject("imageBuffer is not valid base64")
            return

        await self._status("processing", "Processing screenshot...")
        try:
            text = await self.ocr.extract_text(image, msg.ocr_provider)
        except Exception:
            log.exception("OCR via %s failed", msg.ocr_provider)
            await self._error(ErrorCode.OCR_FAILED, "Failed to extract text from screenshot")
            return

        if not text:
            return

        detection = self.detector.extract_best(text)
        if detection.is_question and detection.question:
            await self._emit(
                "question-detected",
                {"question": detection.question, "source": "screen", "confidence": detection.confidence},
            )

    async def _on_generate_answer(self, msg: GenerateAnswerIn) -> None:
        if self.state.mock is not None:
            await self.reject("generate-answer is not available during a mock interview")
            return

        await self._status("processing", "Generating answer...")
        result = await self.gateway.generate(msg.question, msg.mode, msg.provider, msg.model, msg.context)

        if self.state.closed:
            log.info("Discarding answer for closed connection")
            return

        if result.error:
            try:
                code = ErrorCode(result.error_code)
            except ValueError:
                code = ErrorCode.AI_GENERATION_FAILED
            await self._error(code, result.error)
            return

        if self.state.history_enabled and self.state.session_id:
            qa = make_question_answer(
                question=msg.question,
                answer=result.answer,
                provider=msg.provider,
                source=msg.source,
                mode=msg.mode,
                code_snippets=result.code_snippets,
            )
            await asyncio.to_thread(self.store.append, self.state.session_id, qa)

        data: Dict[str, Any] = {
            "question": msg.question,
            "answer": result.answer,
            "mode": msg.mode,
            "provider": msg.provider,
        }
        if result.code_snippets:
            data["codeSnippets"] = [s.to_wire() for s in result.code_snippets]
        await self._emit("answer-ready", data)
        await self._status(self.status.value, "Ready")

    # ------------------------------
    # Mock interview
    # ------------------------------
    async def _on_start_mock(self, msg: StartMockInterviewIn) -> None:
        if self.state.mock is not None:
            log.info("Restarting mock interview")
            self._cancel_timer(self.state.mock)

        self.state.mock = MockState(
            difficulty=msg.difficulty,
            question_types=list(msg.question_types),
            context=msg.context,
            interval=msg.interval,
            started_at=self._monotonic(),
        )
        await self._status("mock-interview", "Mock interview started")
        await self._ask_mock_question()

    async def _on_mock_next(self) -> None:
        if self.state.mock is None:
            await self.reject("No mock interview in progress")
            return
        await self._ask_mock_question()

    async def _ask_mock_question(self) -> None:
        mock = self.state.mock
        if mock is None:
            return
        self._cancel_timer(mock)

        # independent uniform draw per question
        qtype = self._rng.choice(mock.question_types)
        await self._status("processing", "Generating question...")
        try:
            question = await self.gateway.generate_question(
                mock.difficulty, qtype, self.mock_provider, self.mock_model, mock.context
            )
        except Exception as e:
            log.warning("Mock question generation failed: %s", e, exc_info=not isinstance(e, GatewayError))
            message = "Failed to generate mock interview question"
            if isinstance(e, GenerationFailed):
                message = f"{message}: {e.classified}"
            await self._error(ErrorCode.MOCK_QUESTION_FAILED, message)
            if not self.state.closed and self.state.mock is mock:
                self._arm_timer(mock)
            return

        if self.state.closed or self.state.mock is not mock:
            return

        # previous question left unanswered
        if len(mock.answers) < len(mock.questions):
            mock.answers.append("")
        mock.questions.append(question)

        await self._emit(
            "mock-question",
            {"question": question, "type": qtype, "difficulty": mock.difficulty},
        )
        self._arm_timer(mock)

    async def _on_mock_answer(self, msg: MockAnswerIn) -> None:
        mock = self.state.mock
        if mock is None:
            await self.reject("No mock interview in progress")
            return
        if len(mock.answers) >= len(mock.questions):
            await self.reject("No unanswered mock question")
            return
        mock.answers.append(msg.answer)
        await self._status("mock-interview", "Answer recorded")

    async def _on_stop_mock(self) -> None:
        mock = self.state.mock
        if mock is None:
            await self.reject("No mock interview in progress")
            return

        self._cancel_timer(mock)
        self.state.mock = None
        self.state.listening = True
        self.state.started = False

        duration = int(max(0.0, self._monotonic() - mock.started_at))
        await self._emit(
            "mock-interview-ended",
            {"questions": list(mock.questions), "answers": list(mock.answers), "duration": duration},
        )
        await self._status("idle", "Mock interview ended")

    async def _on_mock_feedback(self, msg: MockFeedbackIn) -> None:
        await self._status("processing", "Analyzing your answers...")
        try:
            feedback = await self.gateway.analyze_transcript(
                msg.questions, msg.answers, self.mock_provider, self.mock_model, msg.context
            )
        except Exception as e:
            log.warning("Mock feedback failed: %s", e, exc_info=not isinstance(e, GatewayError))
            message = "Failed to generate feedback"
            if isinstance(e, GatewayError):
                message = f"{message}: {e}"
            await self._error(ErrorCode.MOCK_FEEDBACK_FAILED, message)
            return

        await self._emit("mock-feedback-ready", feedback.to_wire())

    def _arm_timer(self, mock: MockState) -> None:
        if not mock.interval or mock.interval <= 0 or self._submit is None:
            return
        mock.timer_token += 1
        token = mock.timer_token
        loop = asyncio.get_running_loop()
        mock.timer = loop.call_later(mock.interval, self._on_timer_fired, mock, token)

    def _cancel_timer(self, mock: MockState) -> None:
        if mock.timer is not None:
            mock.timer.cancel()
            mock.timer = None
        mock.timer_token += 1

    def _on_timer_fired(self, mock: MockState, token: int) -> None:
        if self.state.closed or self.state.mock is not mock or mock.timer_token != token:
            return
        mock.timer = None

        async def advance() -> None:
            # stop/next/restart may have been queued ahead of us
            if self.state.mock is mock and mock.timer_token == token:
                await self._ask_mock_question()

        self._submit(advance)

    # ------------------------------
    # History & control
    # ------------------------------
    async def _on_session_history(self, msg: SessionHistoryIn) -> None:
        sessions = self.store.list(msg.limit)
        await self._emit("session-history", {"sessions": [s.to_wire() for s in sessions]})

    async def _on_export_sessions(self, msg: ExportSessionsIn) -> None:
        content = self.store.export(msg.format)
        await self._emit(
            "sessions-exported",
            {"format": msg.format, "content": content, "filename": export_filename(msg.format)},
        )

    async def _on_pause(self) -> None:
        self.state.listening = False
        await self._emit("listening-paused", {})
        await self._status("paused", "Listening paused")

    async def _on_resume(self) -> None:
        self.state.listening = True
        self.state.started = True
        await self._emit("listening-resumed", {})
        await self._status("listening", "Listening resumed")

    async def _on_config_update(self, msg: ConfigUpdateIn) -> None:
        if msg.history_enabled is not None:
            self.state.history_enabled = msg.history_enabled
        await self._status(self.status.value, "Configuration updated")

    async def _on_ping(self) -> None:
        await self._emit("pong", {})
