# backend/services/session_store.py
"""
Durable, size-bounded session history.

All sessions live in memory and are written through to a single
`sessions.json` after every mutation. Writers are serialised by a lock;
readers see the current list without taking it, because every write builds
a new list (and new Session objects) instead of mutating in place.
"""
import csv
import io
import json
import logging
import os
import threading
import time
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from schemas.session import CodeSnippet, QuestionAnswer, Session, UserContext

log = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 50
SESSIONS_FILE = "sessions.json"
CSV_HEADER = ["Session ID", "Timestamp", "Question", "Answer", "Code Snippets", "Source", "Mode", "Provider"]

_sessions_adapter = TypeAdapter(List[Session])


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_ms(ts_ms: int) -> str:
    dt = datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def export_filename(fmt: str, today: Optional[date] = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"interview-sessions-{today.isoformat()}.{fmt}"


def make_question_answer(
    question: str,
    answer: str,
    provider: str,
    source: str = "audio",
    mode: str = "full",
    code_snippets: Optional[Sequence[CodeSnippet]] = None,
    timestamp: Optional[int] = None,
) -> QuestionAnswer:
    return QuestionAnswer(
        id=str(uuid.uuid4()),
        question=question,
        answer=answer,
        code_snippets=list(code_snippets) if code_snippets else None,
        source=source,
        mode=mode,
        provider=provider,
        timestamp=timestamp if timestamp is not None else now_ms(),
    )


class SessionStore:
    def __init__(
        self,
        data_dir: str,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        clock: Callable[[], int] = now_ms,
    ):
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / SESSIONS_FILE
        self.max_sessions = max_sessions
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: List[Session] = []
        self._load()

    # ------------------------------
    # Persistence
    # ------------------------------
    def _load(self) -> None:
        if not self.path.exists():
            log.info("No session store at %s, starting empty", self.path)
            with self._lock:
                self._persist()
            return
        try:
            self._sessions = _sessions_adapter.validate_json(self.path.read_bytes())
        except (OSError, ValueError, ValidationError):
            # corrupt data is not repaired; it is overwritten on the next write
            log.exception("Could not load session store %s, starting empty", self.path)
            self._sessions = []

    def _persist(self) -> None:
        """Must be called with the lock held. Failures are logged, never raised."""
        tmp = self.path.with_suffix(".json.tmp")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            payload = json.dumps([s.to_wire() for s in self._sessions], indent=2, ensure_ascii=False)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError):
            log.exception("Failed to persist session store to %s", self.path)

    def _find(self, session_id: str) -> Optional[int]:
        for i, s in enumerate(self._sessions):
            if s.id == session_id:
                return i
        return None

    def _trim(self) -> bool:
        if len(self._sessions) <= self.max_sessions:
            return False
        ordered = sorted(self._sessions, key=lambda s: s.start_time, reverse=True)
        evicted = len(ordered) - self.max_sessions
        self._sessions = ordered[: self.max_sessions]
        log.info("Evicted %d old session(s)", evicted)
        return True

    # ------------------------------
    # Mutations
    # ------------------------------
    def create(self, context: Optional[UserContext] = None) -> Session:
        session = Session(id=str(uuid.uuid4()), start_time=self._clock(), context=context)
        with self._lock:
            self._sessions = self._sessions + [session]
            self._persist()
        return session

    def append(self, session_id: str, qa: QuestionAnswer) -> bool:
        """Returns False (and logs) when the session is missing or already closed."""
        with self._lock:
            idx = self._find(session_id)
            if idx is None:
                log.warning("append to unknown session %s ignored", session_id)
                return False
            current = self._sessions[idx]
            if current.end_time is not None:
                log.warning("append to closed session %s ignored", session_id)
                return False
            updated = current.model_copy(update={"questions": current.questions + [qa]})
            sessions = list(self._sessions)
            sessions[idx] = updated
            self._sessions = sessions
            self._persist()
        return True

    def close(self, session_id: str) -> Optional[Session]:
        with self._lock:
            idx = self._find(session_id)
            if idx is None:
                log.warning("close of unknown session %s ignored", session_id)
                return None
            current = self._sessions[idx]
            if current.end_time is not None:
                return current
            closed = current.model_copy(update={"end_time": max(self._clock(), current.start_time)})
            sessions = list(self._sessions)
            sessions[idx] = closed
            self._sessions = sessions
            self._trim()
            self._persist()
        return closed

    def delete(self, session_id: str) -> bool:
        with self._lock:
            remaining = [s for s in self._sessions if s.id != session_id]
            found = len(remaining) != len(self._sessions)
            self._sessions = remaining
            self._persist()
        return found

    def clear(self) -> None:
        with self._lock:
            self._sessions = []
            self._persist()

    def set_max_sessions(self, cap: int) -> None:
        if cap < 1:
            raise ValueError("max_sessions must be >= 1")
        with self._lock:
            self.max_sessions = cap
            if self._trim():
                self._persist()

    # ------------------------------
    # Reads (lock-free snapshot)
    # ------------------------------
    def list(self, limit: int = 10) -> List[Session]:
        snapshot = self._sessions
        return sorted(snapshot, key=lambda s: s.start_time, reverse=True)[: max(limit, 0)]

    def get(self, session_id: str) -> Optional[Session]:
        for s in self._sessions:
            if s.id == session_id:
                return s
        return None

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------
    # Export
    # ------------------------------
    def export(self, fmt: str) -> str:
        if fmt == "json":
            return self.export_json()
        if fmt == "csv":
            return self.export_csv()
        raise ValueError(f"Unsupported export format: {fmt}")

    def export_json(self) -> str:
        return json.dumps([s.to_wire() for s in self._sessions], indent=2, ensure_ascii=False)

    def export_csv(self) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for session in self._sessions:
            for qa in session.questions:
                snippets = ""
                if qa.code_snippets:
                    snippets = json.dumps(
                        [s.to_wire() for s in qa.code_snippets], separators=(",", ":"), ensure_ascii=False
                    )
                writer.writerow(
                    [session.id, iso_ms(qa.timestamp), qa.question, qa.answer, snippets, qa.source, qa.mode, qa.provider]
                )
        return buf.getvalue().rstrip("\n")
