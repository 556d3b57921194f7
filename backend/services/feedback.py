# backend/services/feedback.py
"""
Turning a model's transcript analysis into a MockFeedback.

Two named stages: `parse_feedback` (locate JSON, parse, schema-validate) and
`fallback_feedback` (synthesised object). `build_feedback` never raises.
"""
import json
import logging
import re
from typing import Optional, Sequence

from pydantic import ValidationError

from schemas.events import AnswerFeedback, MockFeedback

log = logging.getLogger(__name__)

FALLBACK_SCORE = 70
SUMMARY_PREVIEW_CHARS = 200

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.S)


def parse_feedback(raw: str) -> Optional[MockFeedback]:
    """Strict parse + schema check. Returns None instead of raising."""
    m = _FENCED_JSON.search(raw or "")
    blob = m.group(1) if m else (raw or "")
    try:
        data = json.loads(blob)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return MockFeedback.model_validate(data)
    except ValidationError:
        return None


def fallback_feedback(raw: str, questions: Sequence[str], answers: Sequence[str]) -> MockFeedback:
    return MockFeedback(
        overall_score=FALLBACK_SCORE,
        summary=(raw or "")[:SUMMARY_PREVIEW_CHARS],
        strengths=["Analysis complete"],
        improvements=["See full feedback below"],
        answer_feedback=[
            AnswerFeedback(
                question=q,
                answer=a,
                score=FALLBACK_SCORE,
                feedback="Unable to parse detailed feedback. Please see summary.",
                suggestions=["Review your answer", "Practice more"],
            )
            for q, a in zip(questions, answers)
        ],
    )


def build_feedback(raw: str, questions: Sequence[str], answers: Sequence[str]) -> MockFeedback:
    parsed = parse_feedback(raw)
    if parsed is not None:
        return parsed
    log.warning("Feedback response did not match schema; using fallback", extra={"raw_chars": len(raw or "")})
    return fallback_feedback(raw, questions, answers)
