# backend/core/errors.py
from enum import Enum


class ErrorCode(str, Enum):
    TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
    OCR_FAILED = "OCR_FAILED"
    AI_GENERATION_FAILED = "AI_GENERATION_FAILED"
    MOCK_QUESTION_FAILED = "MOCK_QUESTION_FAILED"
    MOCK_FEEDBACK_FAILED = "MOCK_FEEDBACK_FAILED"
    INVALID_REQUEST = "INVALID_REQUEST"

    # ProviderGateway kinds, surfaced as-is on generate-answer failures
    API_KEY_MISSING = "API_KEY_MISSING"
    API_RATE_LIMIT = "API_RATE_LIMIT"
    API_ERROR = "API_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


_WARNINGS = {ErrorCode.OCR_FAILED, ErrorCode.INVALID_REQUEST}


def severity_for(code: ErrorCode) -> Severity:
    return Severity.WARNING if code in _WARNINGS else Severity.ERROR


class GatewayError(Exception):
    """Raised by ProviderGateway operations whose callers must react synchronously."""

    code = "API_ERROR"


class GenerationFailed(GatewayError):
    def __init__(self, classified: str):
        super().__init__(classified)
        self.classified = classified
        self.code = classified.split(":", 1)[0]


class TranscriptValidationError(GatewayError):
    code = "VALIDATION"


class TranscriptionError(Exception):
    pass


class OCRError(Exception):
    pass
