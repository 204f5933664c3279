"""
Session Store - durable per-user interview progress.

Provides:
- SessionStore: the contract the interview core depends on
- InMemorySessionStore: process-local store (tests, single-process dev)
- JsonSessionStore: one JSON document per session under a data directory
- DebouncedSessionWriter: coalesces rapid partial updates (canvas edits)
"""

import copy
import hashlib
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from ..exceptions import StoreError, ValidationError
from ..schemas.interview_data import MAIN_QUESTIONS
from ..schemas.session import (
    UPDATABLE_SESSION_FIELDS,
    Answer,
    NextStep,
    Session,
    UserProfile,
)

logger = structlog.get_logger(__name__)

_ANSWERABLE_IDS = frozenset(q.id for q in MAIN_QUESTIONS)


def session_id_for(user_id: str) -> str:
    """Stable session id derived from the user id."""
    digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()
    return f"s{digest[:16]}"


def _normalize_field(name: str, value: Any) -> Any:
    if name == "next_steps":
        return [
            step if isinstance(step, NextStep) else NextStep(**step)
            for step in value
        ]
    if name == "completed_sections":
        ordered: List[int] = []
        for section_id in value:
            if int(section_id) not in ordered:
                ordered.append(int(section_id))
        return ordered
    return copy.deepcopy(value)


class SessionStore(ABC):
    """
    Abstract session store.

    One session per user, created lazily. Answers are keyed by
    (session id, question id) and upserted in place.
    """

    @abstractmethod
    def get_or_create(self, user_id: str) -> Session:
        """Load the user's session, creating an empty one if none exists."""
        pass

    @abstractmethod
    def update(self, user_id: str, **fields) -> Session:
        """
        Apply a partial update to the user's session.

        Raises:
            ValidationError: If a field name is not updatable
        """
        pass

    @abstractmethod
    def upsert_answer(self, session_id: str, question_id: int, text: str) -> Answer:
        """Store the main answer for a question, replacing any earlier one."""
        pass

    @abstractmethod
    def set_follow_up(self, session_id: str, question_id: int, text: str) -> Answer:
        """Attach a follow-up reply to an existing answer."""
        pass

    @abstractmethod
    def list_answers(self, session_id: str) -> List[Answer]:
        """All answers for a session, ordered by question id."""
        pass

    @abstractmethod
    def set_ai_response(self, session_id: str, question_id: int, text: str) -> None:
        """Attach the coaching response to an existing answer."""
        pass

    @abstractmethod
    def reset(self, user_id: str) -> Session:
        """Delete all answers and start the user's session over."""
        pass

    @abstractmethod
    def save_user(self, profile: UserProfile) -> None:
        pass

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserProfile]:
        pass


class InMemorySessionStore(SessionStore):
    """Thread-safe store held in process memory."""

    def __init__(self):
        self._lock = threading.RLock()
        self._sessions: Dict[str, Session] = {}
        self._answers: Dict[str, Dict[int, Answer]] = {}
        self._users: Dict[str, UserProfile] = {}

    # ── Hooks for persistent subclasses ─────────────────────────

    def _load_session(self, user_id: str) -> Optional[Session]:
        return self._sessions.get(user_id)

    def _persist(self, session: Session) -> None:
        pass

    def _persist_user(self, profile: UserProfile) -> None:
        pass

    # ── Helpers ─────────────────────────────────────────────────

    def _session_by_id(self, session_id: str) -> Session:
        for session in self._sessions.values():
            if session.id == session_id:
                return session
        raise StoreError(f"Unknown session '{session_id}'")

    @staticmethod
    def _check_question(question_id: int):
        if question_id not in _ANSWERABLE_IDS:
            raise ValidationError(f"Question {question_id} does not take a stored answer")

    @staticmethod
    def _check_text(text: str) -> str:
        trimmed = (text or "").strip()
        if not trimmed:
            raise ValidationError("Answer text must not be empty")
        return trimmed

    def _touch(self, session: Session):
        session.updated_at = datetime.now().isoformat(timespec="seconds")

    # ── SessionStore ────────────────────────────────────────────

    def get_or_create(self, user_id: str) -> Session:
        with self._lock:
            session = self._load_session(user_id)
            if session is None:
                session = Session(id=session_id_for(user_id), user_id=user_id)
                self._sessions[user_id] = session
                self._answers.setdefault(session.id, {})
                self._persist(session)
                logger.info("session_created", user_id=user_id, session_id=session.id)
            return copy.deepcopy(session)

    def update(self, user_id: str, **fields) -> Session:
        unknown = set(fields) - UPDATABLE_SESSION_FIELDS
        if unknown:
            raise ValidationError(f"Unknown session fields: {', '.join(sorted(unknown))}")

        with self._lock:
            session = self._load_session(user_id)
            if session is None:
                raise StoreError(f"No session for user '{user_id}'")
            for name, value in fields.items():
                setattr(session, name, _normalize_field(name, value))
            self._touch(session)
            self._persist(session)
            return copy.deepcopy(session)

    def upsert_answer(self, session_id: str, question_id: int, text: str) -> Answer:
        self._check_question(question_id)
        trimmed = self._check_text(text)

        with self._lock:
            session = self._session_by_id(session_id)
            answers = self._answers.setdefault(session_id, {})
            existing = answers.get(question_id)
            if existing is None:
                answer = Answer(question_id=question_id, answer=trimmed)
                answers[question_id] = answer
            else:
                existing.answer = trimmed
                existing.updated_at = datetime.now().isoformat(timespec="seconds")
                answer = existing
            self._touch(session)
            self._persist(session)
            return copy.deepcopy(answer)

    def set_follow_up(self, session_id: str, question_id: int, text: str) -> Answer:
        trimmed = self._check_text(text)

        with self._lock:
            session = self._session_by_id(session_id)
            answer = self._answers.get(session_id, {}).get(question_id)
            if answer is None:
                raise StoreError(f"No answer for question {question_id} to attach a follow-up to")
            answer.follow_up = trimmed
            answer.updated_at = datetime.now().isoformat(timespec="seconds")
            self._touch(session)
            self._persist(session)
            return copy.deepcopy(answer)

    def list_answers(self, session_id: str) -> List[Answer]:
        with self._lock:
            self._session_by_id(session_id)
            answers = self._answers.get(session_id, {})
            return [copy.deepcopy(answers[qid]) for qid in sorted(answers)]

    def set_ai_response(self, session_id: str, question_id: int, text: str) -> None:
        with self._lock:
            session = self._session_by_id(session_id)
            answer = self._answers.get(session_id, {}).get(question_id)
            if answer is None:
                raise StoreError(f"No answer for question {question_id} to attach a response to")
            answer.ai_response = text
            self._touch(session)
            self._persist(session)

    def reset(self, user_id: str) -> Session:
        with self._lock:
            session = Session(id=session_id_for(user_id), user_id=user_id)
            self._sessions[user_id] = session
            self._answers[session.id] = {}
            self._persist(session)
            logger.info("session_reset", user_id=user_id, session_id=session.id)
            return copy.deepcopy(session)

    def save_user(self, profile: UserProfile) -> None:
        with self._lock:
            self._users[profile.user_id] = copy.deepcopy(profile)
            self._persist_user(profile)

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            profile = self._users.get(user_id)
            return copy.deepcopy(profile) if profile else None


class JsonSessionStore(InMemorySessionStore):
    """
    File-backed store: one JSON document per session.

    Layout:
        <directory>/<session_id>.json   session, answers and user profile

    Writes go to a temp file and are moved into place with os.replace so a
    crash never leaves a half-written document.
    """

    def __init__(self, directory: Path):
        super().__init__()
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create session directory {self.directory}: {e}") from e

    def _path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    def _read_document(self, session_id: str) -> Optional[dict]:
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read session file {path}: {e}") from e

    def _load_session(self, user_id: str) -> Optional[Session]:
        cached = self._sessions.get(user_id)
        if cached is not None:
            return cached

        document = self._read_document(session_id_for(user_id))
        if document is None or "session" not in document:
            return None

        session = Session.from_dict(document["session"])
        self._sessions[user_id] = session
        self._answers[session.id] = {
            int(a["question_id"]): Answer.from_dict(a) for a in document.get("answers", [])
        }
        if document.get("user"):
            self._users[user_id] = UserProfile.from_dict(document["user"])
        return session

    def _session_by_id(self, session_id: str) -> Session:
        try:
            return super()._session_by_id(session_id)
        except StoreError:
            document = self._read_document(session_id)
            if document is None or "session" not in document:
                raise
            session = self._load_session(document["session"]["user_id"])
            if session is None:
                raise
            return session

    def _write_document(self, session_id: str, document: dict):
        path = self._path(session_id)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error("session_write_failed", session_id=session_id, error=str(e))
            raise StoreError(f"Cannot write session file {path}: {e}") from e

    def _known_user(self, user_id: str) -> Optional[UserProfile]:
        if user_id not in self._users:
            document = self._read_document(session_id_for(user_id))
            if document and document.get("user"):
                self._users[user_id] = UserProfile.from_dict(document["user"])
        return self._users.get(user_id)

    def _persist(self, session: Session) -> None:
        answers = self._answers.get(session.id, {})
        user = self._known_user(session.user_id)
        self._write_document(session.id, {
            "session": session.to_dict(),
            "answers": [answers[qid].to_dict() for qid in sorted(answers)],
            "user": user.to_dict() if user else None,
        })

    def _persist_user(self, profile: UserProfile) -> None:
        session = self._load_session(profile.user_id)
        if session is not None:
            self._persist(session)
        else:
            # Profile arrives before the first session access
            self._write_document(session_id_for(profile.user_id), {"user": profile.to_dict()})

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            self._known_user(user_id)
        return super().get_user(user_id)


class DebouncedSessionWriter:
    """
    Coalesces rapid partial updates into a single store write.

    Each stage() call merges fields into a pending update and restarts the
    timer. flush() writes immediately; report generation calls it before
    reading the session.
    """

    def __init__(self, store: SessionStore, user_id: str, delay: float = 0.5):
        self.store = store
        self.user_id = user_id
        self.delay = delay
        self._pending: Dict[str, Any] = {}
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        # Held across store.update so a flush returns only after earlier writes land
        self._write_lock = threading.Lock()

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def stage(self, **fields):
        """Queue fields for the next write. Later values for a field win."""
        unknown = set(fields) - UPDATABLE_SESSION_FIELDS
        if unknown:
            raise ValidationError(f"Unknown session fields: {', '.join(sorted(unknown))}")

        with self._lock:
            for name, value in fields.items():
                if name == "career_canvas" and isinstance(self._pending.get(name), dict):
                    self._pending[name].update(value)
                else:
                    self._pending[name] = copy.deepcopy(value)
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._timer_fired)
            self._timer.daemon = True
            self._timer.start()

    def _timer_fired(self):
        try:
            self.flush()
        except StoreError as e:
            logger.warning("debounced_write_failed", user_id=self.user_id, error=str(e))

    def flush(self) -> Optional[Session]:
        """Write pending fields now. Returns the updated session, or None if nothing was pending."""
        with self._write_lock:
            with self._lock:
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                pending, self._pending = self._pending, {}

            if not pending:
                return None
            return self.store.update(self.user_id, **pending)

    def cancel(self):
        """Drop pending fields without writing."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = {}
