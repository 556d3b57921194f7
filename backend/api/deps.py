# api/deps.py
from functools import lru_cache

from ai.backends import build_backends
from core.config import Settings, settings
from services.connection_registry import ConnectionRegistry
from services.ocr import OCRService, build_ocr_service
from services.orchestrator import InterviewOrchestrator
from services.provider_gateway import ProviderGateway
from services.question_detection import QuestionDetector
from services.session_store import SessionStore
from services.transcription import Transcriber, build_transcriber


def get_settings() -> Settings:
    return settings


@lru_cache
def get_session_store() -> SessionStore:
    return SessionStore(settings.data_dir, max_sessions=settings.max_sessions)


@lru_cache
def get_gateway() -> ProviderGateway:
    return ProviderGateway(build_backends(settings))


@lru_cache
def get_transcriber() -> Transcriber:
    return build_transcriber(settings)


@lru_cache
def get_ocr_service() -> OCRService:
    return build_ocr_service(settings)


@lru_cache
def get_detector() -> QuestionDetector:
    return QuestionDetector()


@lru_cache
def get_registry() -> ConnectionRegistry:
    def factory(emit, submit) -> InterviewOrchestrator:
        return InterviewOrchestrator(
            detector=get_detector(),
            gateway=get_gateway(),
            store=get_session_store(),
            transcriber=get_transcriber(),
            ocr=get_ocr_service(),
            emit=emit,
            submit=submit,
            mock_provider=settings.mock_provider,
            mock_model=settings.mock_model,
            server_version=settings.server_version,
        )

    return ConnectionRegistry(factory)
