"""
Odyssey Sub-Flow - three possible five-year futures.

For each path (tweaked, pivot, wildcard) the user first describes the
path, then rates it on four dimensions from 1 to 5:

    path_a: entry -> rating -> path_b: entry -> rating -> path_c: entry -> rating -> done

Independent from the main question flow; the interview flow starts it
once every main question has been handled and is notified on completion.
"""

import json
from enum import Enum
from typing import Callable, Dict, List, Optional

import structlog

from ..exceptions import (
    FlowStateError,
    IncompleteRatingError,
    InvalidAnswerError,
    InvalidRatingError,
    StoreError,
    ValidationError,
)
from ..schemas.interview_data import (
    MAX_RATING,
    MIN_RATING,
    ODYSSEY_DIMENSION_IDS,
    ODYSSEY_PATH_IDS,
    ODYSSEY_PATHS,
    ODYSSEY_PLANS_QUESTION,
    UNRATED,
)
from ..schemas.session import Session, empty_odyssey_paths, empty_odyssey_ratings

logger = structlog.get_logger(__name__)


PATH_PROMPTS = {
    "path_a": "Path A, The Tweaked Path. Imagine you continue on your current trajectory, but make "
              "smart adjustments. What does your life look like in five years? Where do you live? "
              "What does a typical Tuesday feel like? Who do you work with?",
    "path_b": "Path B, The Pivot. Imagine your current path disappears tomorrow: your job, your "
              "industry, gone. What do you do instead? Be specific. What does this new path look "
              "like in five years?",
    "path_c": "Path C, The Wildcard. Money doesn't matter. Other people's opinions don't matter. "
              "Anything is possible. What's the life you'd actually want? Describe it in detail.",
}

RATING_INTRO = {
    "path_a": "Now let's rate Path A on four dimensions from one to five.",
    "path_b": "Now let's rate Path B on four dimensions from one to five.",
    "path_c": "And finally, let's rate Path C on four dimensions from one to five.",
}


class OdysseyPhase(str, Enum):
    PATH_ENTRY = "path_entry"
    PATH_RATING = "path_rating"
    DONE = "done"


def is_fully_rated(scores: Dict[str, int]) -> bool:
    """True iff every dimension holds a score from 1 to 5."""
    return all(
        MIN_RATING <= scores.get(dim, UNRATED) <= MAX_RATING
        for dim in ODYSSEY_DIMENSION_IDS
    )


class OdysseyFlow:
    """
    State machine for the Odyssey exercise.

    Args:
        store: Session store
        session: The user's session (paths and ratings are resumed from it)
        on_complete: Called with (paths, ratings) after the last path is rated
    """

    def __init__(self, store, session: Session, on_complete: Optional[Callable] = None):
        self.store = store
        self.user_id = session.user_id
        self.session_id = session.id
        self.on_complete = on_complete

        self.paths: Dict[str, str] = empty_odyssey_paths()
        self.paths.update(session.odyssey_paths)
        self.ratings: Dict[str, Dict[str, int]] = empty_odyssey_ratings()
        for path_id, scores in session.odyssey_ratings.items():
            if path_id in self.ratings:
                self.ratings[path_id].update(scores)

        self.path_index = 0
        self.phase = OdysseyPhase.PATH_ENTRY
        self._resume()

    def _resume(self):
        """Position at the first path that still needs a description or ratings."""
        for index, path_id in enumerate(ODYSSEY_PATH_IDS):
            self.path_index = index
            if not self.paths[path_id].strip():
                self.phase = OdysseyPhase.PATH_ENTRY
                return
            if not is_fully_rated(self.ratings[path_id]):
                self.phase = OdysseyPhase.PATH_RATING
                return
        self.phase = OdysseyPhase.DONE

    # ── State ───────────────────────────────────────────────────

    @property
    def current_path_id(self) -> Optional[str]:
        if self.phase == OdysseyPhase.DONE:
            return None
        return ODYSSEY_PATH_IDS[self.path_index]

    @property
    def current_path(self):
        if self.phase == OdysseyPhase.DONE:
            return None
        return ODYSSEY_PATHS[self.path_index]

    @property
    def all_rated(self) -> bool:
        """Whether the current path has all four dimensions rated."""
        path_id = self.current_path_id
        if path_id is None:
            return False
        return is_fully_rated(self.ratings[path_id])

    @property
    def is_done(self) -> bool:
        return self.phase == OdysseyPhase.DONE

    @property
    def all_paths_rated(self) -> bool:
        return all(is_fully_rated(self.ratings[p]) for p in ODYSSEY_PATH_IDS)

    def missing_dimensions(self) -> List[str]:
        path_id = self.current_path_id
        if path_id is None:
            return []
        scores = self.ratings[path_id]
        return [d for d in ODYSSEY_DIMENSION_IDS if not MIN_RATING <= scores[d] <= MAX_RATING]

    def prompt_text(self) -> str:
        """What the coach says at this point of the exercise."""
        path_id = self.current_path_id
        if path_id is None:
            return ""
        if self.phase == OdysseyPhase.PATH_ENTRY:
            return PATH_PROMPTS[path_id]
        return RATING_INTRO[path_id]

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "path_index": self.path_index,
            "current_path_id": self.current_path_id,
            "prompt": self.prompt_text(),
            "paths": dict(self.paths),
            "ratings": {p: dict(s) for p, s in self.ratings.items()},
            "all_rated": self.all_rated,
        }

    def _require_phase(self, phase: OdysseyPhase, action: str):
        if self.phase != phase:
            raise FlowStateError(f"Cannot {action} during Odyssey phase '{self.phase.value}'")

    # ── Operations ──────────────────────────────────────────────

    def submit_path(self, text: str) -> OdysseyPhase:
        """
        Record the description for the current path and move to rating.

        The whole three-path record is saved, and also stored as the
        answer to the Odyssey plans question.
        """
        trimmed = (text or "").strip()
        if not trimmed:
            raise InvalidAnswerError("Path description must not be empty")
        self._require_phase(OdysseyPhase.PATH_ENTRY, "describe a path")

        path_id = self.current_path_id
        self.paths[path_id] = trimmed

        try:
            self.store.update(self.user_id, odyssey_paths=dict(self.paths))
        except StoreError as e:
            logger.warning("odyssey_paths_save_failed", user_id=self.user_id, error=str(e))

        try:
            self.store.upsert_answer(
                self.session_id, ODYSSEY_PLANS_QUESTION.id, json.dumps(self.paths)
            )
        except StoreError as e:
            logger.warning("odyssey_answer_save_failed", user_id=self.user_id, error=str(e))

        self.phase = OdysseyPhase.PATH_RATING
        logger.info("odyssey_path_entered", user_id=self.user_id, path_id=path_id)
        return self.phase

    def rate(self, dimension: str, value: int) -> bool:
        """
        Set one dimension score for the current path.

        Returns:
            Whether the current path is now fully rated

        Raises:
            InvalidRatingError: If value is not an integer from 1 to 5
            ValidationError: If the dimension is unknown
        """
        if dimension not in ODYSSEY_DIMENSION_IDS:
            raise ValidationError(f"Unknown Odyssey dimension '{dimension}'")
        if isinstance(value, bool) or not isinstance(value, int) or not MIN_RATING <= value <= MAX_RATING:
            raise InvalidRatingError(dimension, value)
        self._require_phase(OdysseyPhase.PATH_RATING, "rate a path")

        self.ratings[self.current_path_id][dimension] = value
        return self.all_rated

    def finish_path(self) -> OdysseyPhase:
        """
        Confirm the ratings for the current path.

        Moves to the next path's description, or after the last path
        saves the full record and signals completion.

        Raises:
            IncompleteRatingError: If any dimension is still unrated
        """
        self._require_phase(OdysseyPhase.PATH_RATING, "finish a path")
        path_id = self.current_path_id
        if not self.all_rated:
            raise IncompleteRatingError(path_id, self.missing_dimensions())

        if self.path_index < len(ODYSSEY_PATH_IDS) - 1:
            try:
                self.store.update(self.user_id, odyssey_ratings=self._ratings_copy())
            except StoreError as e:
                logger.warning("odyssey_ratings_save_failed", user_id=self.user_id, error=str(e))
            self.path_index += 1
            self.phase = OdysseyPhase.PATH_ENTRY
            return self.phase

        try:
            self.store.update(
                self.user_id,
                odyssey_paths=dict(self.paths),
                odyssey_ratings=self._ratings_copy(),
            )
        except StoreError as e:
            logger.warning("odyssey_save_failed", user_id=self.user_id, error=str(e))

        self.phase = OdysseyPhase.DONE
        logger.info("odyssey_complete", user_id=self.user_id)
        if self.on_complete is not None:
            self.on_complete(dict(self.paths), self._ratings_copy())
        return self.phase

    def _ratings_copy(self) -> Dict[str, Dict[str, int]]:
        return {p: dict(s) for p, s in self.ratings.items()}
