from typing import List, Literal, Optional, Union
from pydantic import Field, StrictFloat, StrictInt, field_validator

from schemas.session import AnswerMode, QuestionSource, UserContext, WireModel

Difficulty = Literal["easy", "medium", "hard"]
QuestionType = Literal["behavioral", "technical", "coding", "system-design"]
ExportFormat = Literal["json", "csv"]


# ---------------------------------------------------------------------------
# Inbound (client -> core)
# ---------------------------------------------------------------------------

class AudioStreamIn(WireModel):
    audio_buffer: str  # base64


class ScreenshotIn(WireModel):
    image_buffer: str  # base64
    ocr_provider: str = "tesseract"

    @field_validator("ocr_provider", mode="before")
    @classmethod
    def _default_provider(cls, v):
        # null or "" from the client means the default engine
        return v or "tesseract"


class GenerateAnswerIn(WireModel):
    question: str = Field(min_length=1)
    mode: AnswerMode = "full"
    provider: str
    model: str
    context: Optional[UserContext] = None
    source: QuestionSource = "audio"


class StartMockInterviewIn(WireModel):
    difficulty: Difficulty
    question_types: List[QuestionType] = Field(min_length=1)
    context: Optional[UserContext] = None
    interval: Optional[float] = None  # seconds between auto-advanced questions


class MockAnswerIn(WireModel):
    answer: str


class MockFeedbackIn(WireModel):
    questions: List[str]
    answers: List[str]
    context: Optional[UserContext] = None


class SessionHistoryIn(WireModel):
    limit: int = Field(10, ge=1)

    @field_validator("limit", mode="before")
    @classmethod
    def _default_limit(cls, v):
        return 10 if v is None or v == 0 else v


class ExportSessionsIn(WireModel):
    format: ExportFormat


class ConfigUpdateIn(WireModel):
    history_enabled: Optional[bool] = None


# ---------------------------------------------------------------------------
# Feedback analysis result
# ---------------------------------------------------------------------------

Score = Union[StrictInt, StrictFloat]


class AnswerFeedback(WireModel):
    question: str
    answer: str
    score: Score
    feedback: str
    suggestions: List[str]


class MockFeedback(WireModel):
    overall_score: Score
    summary: str
    strengths: List[str]
    improvements: List[str]
    answer_feedback: List[AnswerFeedback]
