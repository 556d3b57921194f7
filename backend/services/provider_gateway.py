# backend/services/provider_gateway.py
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ai.base import (
    LLMBackend,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
)
from core.errors import GenerationFailed, TranscriptValidationError
from schemas.events import MockFeedback
from schemas.session import CodeSnippet, UserContext
from services.feedback import build_feedback
from services.prompts import (
    CODE_BLOCK_INSTRUCTION,
    INTERVIEWER_PROMPT,
    build_feedback_prompt,
    build_question_prompt,
    build_system_prompt,
    is_coding_question,
)

log = logging.getLogger(__name__)

# ------------------------------
# Config
# ------------------------------
RATE_LIMIT_DELAYS = (1.0, 2.0, 5.0)  # seconds, indexed by attempt
MAX_ATTEMPTS = 3
MAX_TOKENS = {"hints": 500, "full": 1500}

CODE_PLACEHOLDER = "\n[Code snippet]\n"
_CODE_BLOCK = re.compile(r"```(\w+)?\n(.*?)```", re.S)


@dataclass
class GenerateResult:
    answer: str
    code_snippets: Optional[List[CodeSnippet]] = None
    error: Optional[str] = None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.split(":", 1)[0] if self.error else None


def extract_code_snippets(text: str) -> Tuple[str, List[CodeSnippet]]:
    snippets = [
        CodeSnippet(language=m.group(1) or "text", code=m.group(2).strip())
        for m in _CODE_BLOCK.finditer(text)
    ]
    return _CODE_BLOCK.sub(CODE_PLACEHOLDER, text).strip(), snippets


def classify_error(provider: str, exc: Exception) -> str:
    if isinstance(exc, ProviderAuthError):
        return f"API_KEY_MISSING: API key for {provider} is not configured or invalid. Please check Settings."
    if isinstance(exc, ProviderRateLimitError):
        return f"API_RATE_LIMIT: Rate limit exceeded for {provider}. Please wait a moment and try again."
    if isinstance(exc, ProviderResponseError):
        return f"INVALID_RESPONSE: Received invalid response from {provider}. Please try again."
    return f"API_ERROR: Error communicating with {provider}. Please check your connection."


class ProviderGateway:
    """
    Uniform front for the generation backends: prompt policy, retry/backoff on
    rate limits and error classification. `generate` never raises.
    """

    def __init__(
        self,
        backends: Dict[str, LLMBackend],
        retry_delays: Sequence[float] = RATE_LIMIT_DELAYS,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backends = backends
        self.retry_delays = tuple(retry_delays)
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def _with_backoff(self, provider: str, call: Callable[[], Awaitable[str]]) -> str:
        last_error: Optional[Exception] = None
        for attempt in range(self.max_attempts):
            try:
                return await call()
            except ProviderRateLimitError as e:
                last_error = e
                if attempt < self.max_attempts - 1:
                    delay = self.retry_delays[min(attempt, len(self.retry_delays) - 1)]
                    log.warning("Rate limited by %s, retrying in %.1fs (attempt %d)", provider, delay, attempt + 1)
                    await self._sleep(delay)
                    continue
                raise
        raise last_error  # type: ignore[misc]

    async def _dispatch(self, provider: str, system: str, prompt: str, model: str, max_tokens: int) -> str:
        backend = self.backends.get(provider)
        if backend is None:
            raise ProviderError(f"Unknown provider: {provider}")
        return await self._with_backoff(
            provider, lambda: backend.complete(system, prompt, model, max_tokens)
        )

    async def generate(
        self,
        text: str,
        mode: str,
        provider: str,
        model: str,
        context: Optional[UserContext] = None,
    ) -> GenerateResult:
        try:
            system = build_system_prompt(mode, context)
            coding = is_coding_question(text)
            if coding:
                system = f"{system}\n\n{CODE_BLOCK_INSTRUCTION}"

            try:
                raw = await self._dispatch(provider, system, text, model, MAX_TOKENS.get(mode, MAX_TOKENS["full"]))
            except ProviderError as e:
                log.warning("Generation via %s failed: %s", provider, e)
                return GenerateResult(answer="", error=classify_error(provider, e))

            if coding:
                answer, snippets = extract_code_snippets(raw)
                return GenerateResult(answer=answer, code_snippets=snippets or None)
            return GenerateResult(answer=raw)
        except Exception:
            log.exception("Error assembling answer from %s", provider)
            return GenerateResult(
                answer="",
                error=f"INVALID_RESPONSE: Received invalid response from {provider}. Please try again.",
            )

    async def _complete_or_raise(self, provider: str, model: str, prompt: str) -> str:
        try:
            return await self._dispatch(provider, INTERVIEWER_PROMPT, prompt, model, MAX_TOKENS["full"])
        except ProviderError as e:
            log.warning("Mock interview call via %s failed: %s", provider, e)
            raise GenerationFailed(classify_error(provider, e)) from e

    async def generate_question(
        self,
        difficulty: str,
        qtype: str,
        provider: str,
        model: str,
        context: Optional[UserContext] = None,
    ) -> str:
        prompt = build_question_prompt(difficulty, qtype, context)
        text = await self._complete_or_raise(provider, model, prompt)
        return text.strip()

    async def analyze_transcript(
        self,
        questions: Sequence[str],
        answers: Sequence[str],
        provider: str,
        model: str,
        context: Optional[UserContext] = None,
    ) -> MockFeedback:
        if len(questions) != len(answers):
            raise TranscriptValidationError(
                f"VALIDATION: questions ({len(questions)}) and answers ({len(answers)}) must have the same length"
            )
        prompt = build_feedback_prompt(questions, answers, context)
        raw = await self._complete_or_raise(provider, model, prompt)
        return build_feedback(raw, questions, answers)
