"""
Session records for the career discovery interview.

A Session holds one user's progress: the current question pointer,
completed sections, Odyssey paths and ratings, the Career Canvas,
next steps and the completion/email flags. Answers are stored one per
question id alongside the session.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .interview_data import (
    CANVAS_KEYS,
    NEXT_STEP_COUNT,
    ODYSSEY_DIMENSION_IDS,
    ODYSSEY_PATH_IDS,
    UNRATED,
)

FOLLOW_UP_TAG = "[Follow-up reply]"


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def empty_odyssey_paths() -> dict[str, str]:
    return {path_id: "" for path_id in ODYSSEY_PATH_IDS}


def empty_odyssey_ratings() -> dict[str, dict[str, int]]:
    return {
        path_id: {dim: UNRATED for dim in ODYSSEY_DIMENSION_IDS}
        for path_id in ODYSSEY_PATH_IDS
    }


def empty_canvas() -> dict[str, str]:
    return {key: "" for key in CANVAS_KEYS}


@dataclass
class NextStep:
    """One concrete action the user commits to."""
    action: str = ""
    deadline: str = ""


@dataclass
class Answer:
    """The stored answer for one question. One row per (session, question)."""
    question_id: int
    answer: str
    follow_up: Optional[str] = None
    ai_response: Optional[str] = None
    updated_at: str = field(default_factory=_now)

    @property
    def full_text(self) -> str:
        """Answer plus the follow-up reply, as fed to the LLM."""
        if self.follow_up:
            return f"{self.answer}\n{FOLLOW_UP_TAG} {self.follow_up}"
        return self.answer

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Answer":
        return cls(
            question_id=int(data["question_id"]),
            answer=data.get("answer", ""),
            follow_up=data.get("follow_up"),
            ai_response=data.get("ai_response"),
            updated_at=data.get("updated_at") or _now(),
        )


@dataclass
class UserProfile:
    """Name and email used for the report."""
    user_id: str
    name: str = ""
    email: str = ""

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "UserProfile":
        return cls(
            user_id=data["user_id"],
            name=data.get("name", ""),
            email=data.get("email", ""),
        )


@dataclass
class Session:
    """Durable per-user interview progress."""
    id: str
    user_id: str
    current_question_id: int = 1
    completed_sections: list[int] = field(default_factory=list)
    odyssey_paths: dict[str, str] = field(default_factory=empty_odyssey_paths)
    odyssey_ratings: dict[str, dict[str, int]] = field(default_factory=empty_odyssey_ratings)
    career_canvas: dict[str, str] = field(default_factory=empty_canvas)
    next_steps: list[NextStep] = field(
        default_factory=lambda: [NextStep() for _ in range(NEXT_STEP_COUNT)]
    )
    is_complete: bool = False
    email_sent: bool = False
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def mark_section_complete(self, section_id: int):
        """Add a section id, keeping order and uniqueness."""
        if section_id not in self.completed_sections:
            self.completed_sections.append(section_id)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        """Create from dictionary (e.g., loaded from JSON)."""
        paths = empty_odyssey_paths()
        paths.update({k: v for k, v in (data.get("odyssey_paths") or {}).items() if k in paths})

        ratings = empty_odyssey_ratings()
        for path_id, scores in (data.get("odyssey_ratings") or {}).items():
            if path_id in ratings:
                ratings[path_id].update(
                    {dim: int(v) for dim, v in scores.items() if dim in ratings[path_id]}
                )

        canvas = empty_canvas()
        canvas.update({k: v for k, v in (data.get("career_canvas") or {}).items() if k in canvas})

        steps = [NextStep(**s) for s in data.get("next_steps") or []]
        steps += [NextStep() for _ in range(NEXT_STEP_COUNT - len(steps))]

        return cls(
            id=data["id"],
            user_id=data["user_id"],
            current_question_id=int(data.get("current_question_id", 1)),
            completed_sections=list(data.get("completed_sections") or []),
            odyssey_paths=paths,
            odyssey_ratings=ratings,
            career_canvas=canvas,
            next_steps=steps[:NEXT_STEP_COUNT],
            is_complete=bool(data.get("is_complete", False)),
            email_sent=bool(data.get("email_sent", False)),
            created_at=data.get("created_at") or _now(),
            updated_at=data.get("updated_at") or _now(),
        )


# Fields a caller may change through SessionStore.update()
UPDATABLE_SESSION_FIELDS = frozenset({
    "current_question_id",
    "completed_sections",
    "odyssey_paths",
    "odyssey_ratings",
    "career_canvas",
    "next_steps",
    "is_complete",
    "email_sent",
})
