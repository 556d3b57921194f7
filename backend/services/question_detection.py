# backend/services/question_detection.py
import re
from dataclasses import dataclass
from typing import Optional

QUESTION_KEYWORDS = (
    "what", "why", "how", "when", "where", "who",
    "can you", "could you", "would you", "will you",
    "explain", "describe", "tell me",
)

IMPERATIVE_KEYWORDS = (
    "implement", "write a function", "create", "solve",
    "build", "design", "develop", "code", "program",
)

QUESTION_THRESHOLD = 0.7
SHORT_TEXT_WORDS = 10

# one sentence plus whatever terminators follow it
_SENTENCE = re.compile(r"[^.!?]+[.!?]*")


@dataclass(frozen=True)
class Detection:
    is_question: bool
    question: Optional[str]
    confidence: float


NO_QUESTION = Detection(False, None, 0.0)


class QuestionDetector:
    """
    Keyword heuristic for "is this an interview question worth answering".
    Scores are kept in tenths internally so threshold checks stay exact.
    """

    def score(self, text: str) -> Detection:
        if not text or not text.strip():
            return NO_QUESTION

        trimmed = text.strip()
        lower = trimmed.lower()

        tenths = 5
        if "?" in trimmed:
            tenths += 3
        if lower.startswith(QUESTION_KEYWORDS):
            tenths += 2

        hits = sum(1 for kw in QUESTION_KEYWORDS if kw in lower)
        if hits > 1:
            tenths += min(hits - 1, 3)

        if any(kw in lower for kw in IMPERATIVE_KEYWORDS):
            tenths += 2

        if len(trimmed.split()) < SHORT_TEXT_WORDS:
            tenths -= 2

        confidence = max(0, min(10, tenths)) / 10
        is_question = confidence >= QUESTION_THRESHOLD
        return Detection(is_question, trimmed if is_question else None, confidence)

    def extract_best(self, text: str) -> Detection:
        """
        Best-scoring sentence from multi-sentence text (OCR/ASR output tends to
        run unrelated sentences together). Falls back to the whole text when no
        single sentence clears the threshold.
        """
        if not text or not text.strip():
            return NO_QUESTION

        best = NO_QUESTION
        for fragment in _SENTENCE.findall(text):
            fragment = fragment.strip()
            if not fragment or not fragment.strip(".!?").strip():
                continue
            result = self.score(fragment)
            if result.confidence > best.confidence:
                best = result

        if not best.is_question:
            best = self.score(text)
        return best
