"""
Interview Flow Controller - the conversation-level state machine.

Main flow over the main questions (the Odyssey rating question is
handled by the Odyssey sub-flow):

    main --answer, coach replies--> followup --reply or skip--> main (next question)
    main --answer, coach fails----> main (next question)

After the last main question the flow hands off to the Odyssey
sub-flow; when that completes the interview is complete.

The next question index is captured when a main answer is submitted,
so a slow coaching call can never move the pointer out of step.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import structlog

from ..exceptions import (
    CoachingUnavailableError,
    FlowStateError,
    InvalidAnswerError,
    SessionUnavailableError,
    StoreError,
    SubmissionInProgressError,
    VoiceBusyError,
)
from ..schemas.interview_data import (
    MAIN_QUESTIONS,
    ODYSSEY_PLANS_QUESTION,
    SECTIONS,
    TOTAL_MAIN_QUESTIONS,
    Question,
    get_section,
)
from ..schemas.session import Session
from ..voice.controller import SpeakOutcome
from ..voice.voices import DEFAULT_VOICE
from .coaching import CoachingResponseGenerator, PreviousAnswer
from .odyssey import OdysseyFlow

logger = structlog.get_logger(__name__)


class ConversationMode(str, Enum):
    MAIN = "main"
    FOLLOWUP = "followup"


class FlowStage(str, Enum):
    MAIN = "main"
    ODYSSEY = "odyssey"
    COMPLETE = "complete"


@dataclass
class PendingSubmission:
    """Captured when a main answer is submitted."""
    question_id: int
    next_index: int


@dataclass
class SubmitResult:
    """Outcome of submit_answer()."""
    question_id: int
    mode: ConversationMode
    stage: FlowStage
    ai_response: Optional[str] = None
    audio: Optional[bytes] = None
    speak_outcome: Optional[SpeakOutcome] = None
    coaching_failed: bool = False
    advanced: bool = False
    warnings: List[str] = field(default_factory=list)


class InterviewFlowController:
    """
    Drives one user's interview.

    Usage:
        flow = InterviewFlowController(store, "user-1", coach)
        flow.start()
        result = await flow.submit_answer("I am a product manager feeling stuck")
        if result.mode == ConversationMode.FOLLOWUP:
            await flow.submit_answer("yes exactly")   # or flow.advance()

    Args:
        store: Session store
        user_id: Owner of the session
        coach: CoachingResponseGenerator
        voice: Optional VoiceController; speaks coaching replies locally
        synthesizer: Optional TTS; audio is returned instead of played
        voice_id: Voice for synthesized audio
        on_odyssey_start: Called with the OdysseyFlow at the handoff
    """

    def __init__(
        self,
        store,
        user_id: str,
        coach: CoachingResponseGenerator,
        voice=None,
        synthesizer=None,
        voice_id: str = DEFAULT_VOICE.voice_id,
        on_odyssey_start: Optional[Callable] = None,
    ):
        self.store = store
        self.user_id = user_id
        self.coach = coach
        self.voice = voice
        self.synthesizer = synthesizer
        self.voice_id = voice_id
        self.on_odyssey_start = on_odyssey_start

        self.session: Optional[Session] = None
        self.current_index = 0
        self.mode = ConversationMode.MAIN
        self.stage = FlowStage.MAIN
        self.previous_answers: List[PreviousAnswer] = []
        self.odyssey: Optional[OdysseyFlow] = None

        self._pending: Optional[PendingSubmission] = None
        self._in_flight = False

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self):
        """
        Load the session and resume where the user left off.

        Raises:
            SessionUnavailableError: If the session cannot be loaded or created
        """
        try:
            self.session = self.store.get_or_create(self.user_id)
            answers = self.store.list_answers(self.session.id)
        except StoreError as e:
            logger.error("session_unavailable", user_id=self.user_id, error=str(e))
            raise SessionUnavailableError(self.user_id, str(e)) from e

        main_ids = {q.id for q in MAIN_QUESTIONS}
        self.previous_answers = [
            PreviousAnswer(a.question_id, a.full_text, a.ai_response)
            for a in answers
            if a.question_id in main_ids
        ]
        self.mode = ConversationMode.MAIN
        self._pending = None
        self._in_flight = False

        if self.session.is_complete:
            self.current_index = TOTAL_MAIN_QUESTIONS
            self.stage = FlowStage.COMPLETE
            self.odyssey = OdysseyFlow(self.store, self.session, on_complete=self._on_odyssey_complete)
        elif len(answers) >= TOTAL_MAIN_QUESTIONS:
            self._enter_odyssey()
        else:
            self.current_index = len(answers)
            self.stage = FlowStage.MAIN

        logger.info(
            "interview_started",
            user_id=self.user_id,
            stage=self.stage.value,
            question_index=self.current_index,
            answers=len(answers),
        )

    @property
    def started(self) -> bool:
        return self.session is not None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def current_question(self) -> Optional[Question]:
        if self.stage != FlowStage.MAIN or self.current_index >= TOTAL_MAIN_QUESTIONS:
            return None
        return MAIN_QUESTIONS[self.current_index]

    def progress(self) -> dict:
        question = self.current_question
        section = get_section(question.section_id) if question else None
        answered = min(self.current_index, TOTAL_MAIN_QUESTIONS)
        return {
            "index": answered,
            "total": TOTAL_MAIN_QUESTIONS,
            "percent": round(answered / TOTAL_MAIN_QUESTIONS * 100),
            "section_id": section.id if section else None,
            "section_title": section.title if section else None,
        }

    def prompt_text(self) -> str:
        """What the coach says to open the current question."""
        if self.stage == FlowStage.ODYSSEY and self.odyssey is not None:
            return self.odyssey.prompt_text()

        question = self.current_question
        if question is None:
            return ""
        if self.current_index == 0:
            section = get_section(question.section_id)
            return (
                "Welcome to Undercurrent. I'm your career discovery coach. "
                f"Let's start with {section.title}. {section.subtitle}. "
                f"Here's your first question: {question.text}"
            )
        return question.text

    def to_dict(self) -> dict:
        question = self.current_question
        return {
            "stage": self.stage.value,
            "mode": self.mode.value,
            "in_flight": self._in_flight,
            "question": {
                "id": question.id,
                "section_id": question.section_id,
                "text": question.text,
                "frameworks": list(question.frameworks),
                "follow_ups": list(question.follow_ups),
            } if question else None,
            "prompt": self.prompt_text(),
            "progress": self.progress(),
            "odyssey": self.odyssey.to_dict() if self.odyssey and self.stage != FlowStage.MAIN else None,
            "is_complete": bool(self.session and self.session.is_complete),
        }

    def _require_main_stage(self, action: str):
        if self.session is None:
            raise FlowStateError("Interview has not been started")
        if self.stage != FlowStage.MAIN:
            raise FlowStateError(f"Cannot {action} during the {self.stage.value} stage")

    # ── Answers ─────────────────────────────────────────────────

    async def submit_answer(self, text: str) -> SubmitResult:
        """
        Submit the user's answer (main mode) or follow-up reply (followup mode).

        Raises:
            InvalidAnswerError: If the text is empty after trimming
            SubmissionInProgressError: If a submission is already running
            FlowStateError: Outside the main question stage
        """
        trimmed = (text or "").strip()
        if not trimmed:
            raise InvalidAnswerError()
        self._require_main_stage("submit an answer")
        if self._in_flight:
            raise SubmissionInProgressError(self.current_question.id)

        self._in_flight = True
        try:
            if self.mode == ConversationMode.FOLLOWUP:
                return self._submit_follow_up(trimmed)
            return await self._submit_main(trimmed)
        finally:
            self._in_flight = False

    def _submit_follow_up(self, text: str) -> SubmitResult:
        question = self.current_question
        result = SubmitResult(question.id, ConversationMode.MAIN, self.stage)

        try:
            stored = self.store.set_follow_up(self.session.id, question.id, text)
            full_text = stored.full_text
        except StoreError as e:
            logger.warning("follow_up_save_failed", user_id=self.user_id, question_id=question.id, error=str(e))
            result.warnings.append("Follow-up reply was not saved")
            full_text = None

        if self.previous_answers and self.previous_answers[-1].question_id == question.id:
            self.previous_answers[-1].answer = full_text or self.previous_answers[-1].answer

        self._advance()
        result.advanced = True
        result.stage = self.stage
        return result

    async def _submit_main(self, text: str) -> SubmitResult:
        question = self.current_question
        result = SubmitResult(question.id, ConversationMode.MAIN, self.stage)

        try:
            self.store.upsert_answer(self.session.id, question.id, text)
        except StoreError as e:
            logger.warning("answer_save_failed", user_id=self.user_id, question_id=question.id, error=str(e))
            result.warnings.append("Answer was not saved")

        self._pending = PendingSubmission(question.id, self.current_index + 1)

        try:
            ai_text = await self.coach.generate(question, text, list(self.previous_answers))
        except CoachingUnavailableError as e:
            # A broken coaching call never blocks the interview
            logger.warning("coaching_skipped", user_id=self.user_id, question_id=question.id, error=str(e))
            self.previous_answers.append(PreviousAnswer(question.id, text))
            self._advance()
            result.coaching_failed = True
            result.advanced = True
            result.stage = self.stage
            result.warnings.append("Coach is unavailable, moved on to the next question")
            return result

        # Saved before any speech so a TTS failure never loses the text
        try:
            self.store.set_ai_response(self.session.id, question.id, ai_text)
        except StoreError as e:
            logger.warning("ai_response_save_failed", user_id=self.user_id, question_id=question.id, error=str(e))

        self.previous_answers.append(PreviousAnswer(question.id, text, ai_text))
        result.ai_response = ai_text

        if self.voice is not None:
            try:
                result.speak_outcome = await self.voice.speak(ai_text)
            except VoiceBusyError as e:
                logger.warning("coaching_not_spoken", user_id=self.user_id, error=str(e))
                result.speak_outcome = SpeakOutcome.SKIPPED
        elif self.synthesizer is not None:
            result.audio = await asyncio.to_thread(self.synthesizer.synthesize, ai_text, self.voice_id)
            if result.audio is None:
                result.warnings.append("Voice unavailable, showing text only")

        self.mode = ConversationMode.FOLLOWUP
        result.mode = self.mode
        return result

    # ── Progression ─────────────────────────────────────────────

    def advance(self) -> Optional[Question]:
        """
        Skip the follow-up (or the question) and move on.

        Returns:
            The new current question, or None after the handoff to the Odyssey stage

        Raises:
            SubmissionInProgressError: While a submission is running
            FlowStateError: Outside the main question stage
        """
        self._require_main_stage("advance")
        if self._in_flight:
            raise SubmissionInProgressError(self._pending.question_id if self._pending else None)
        self._advance()
        return self.current_question

    def _advance(self):
        next_index = self._pending.next_index if self._pending else self.current_index + 1
        self._pending = None
        self.mode = ConversationMode.MAIN
        left = MAIN_QUESTIONS[self.current_index]

        if next_index >= TOTAL_MAIN_QUESTIONS:
            self._enter_odyssey()
            return

        self.current_index = next_index
        question = MAIN_QUESTIONS[next_index]

        fields = {"current_question_id": question.id}
        if question.section_id != left.section_id:
            completed = list(self.session.completed_sections)
            if left.section_id not in completed:
                completed.append(left.section_id)
            fields["completed_sections"] = completed

        try:
            self.session = self.store.update(self.user_id, **fields)
        except StoreError as e:
            logger.warning("progress_save_failed", user_id=self.user_id, question_id=question.id, error=str(e))
            self.session.current_question_id = question.id
            if "completed_sections" in fields:
                self.session.completed_sections = fields["completed_sections"]

        logger.info("question_advanced", user_id=self.user_id, question_id=question.id)

    def _enter_odyssey(self):
        self.current_index = TOTAL_MAIN_QUESTIONS
        self.stage = FlowStage.ODYSSEY
        all_sections = [s.id for s in SECTIONS]

        try:
            self.session = self.store.update(
                self.user_id,
                current_question_id=ODYSSEY_PLANS_QUESTION.id,
                completed_sections=all_sections,
            )
        except StoreError as e:
            logger.warning("progress_save_failed", user_id=self.user_id, stage="odyssey", error=str(e))
            self.session.current_question_id = ODYSSEY_PLANS_QUESTION.id
            self.session.completed_sections = all_sections

        self.odyssey = OdysseyFlow(self.store, self.session, on_complete=self._on_odyssey_complete)
        logger.info("odyssey_started", user_id=self.user_id, phase=self.odyssey.phase.value)

        if self.odyssey.is_done:
            self._on_odyssey_complete(self.odyssey.paths, self.odyssey.ratings)
        elif self.on_odyssey_start is not None:
            self.on_odyssey_start(self.odyssey)

    def _on_odyssey_complete(self, paths: dict, ratings: dict):
        self.stage = FlowStage.COMPLETE

        try:
            answered = {a.question_id for a in self.store.list_answers(self.session.id)}
        except StoreError as e:
            logger.warning("completion_check_failed", user_id=self.user_id, error=str(e))
            return

        last_main = MAIN_QUESTIONS[-1].id
        if last_main not in answered or not self.odyssey.all_paths_rated:
            logger.warning(
                "interview_incomplete",
                user_id=self.user_id,
                last_question_answered=last_main in answered,
                all_paths_rated=self.odyssey.all_paths_rated,
            )
            return

        try:
            self.session = self.store.update(self.user_id, is_complete=True)
        except StoreError as e:
            logger.warning("completion_save_failed", user_id=self.user_id, error=str(e))
            self.session.is_complete = True
        logger.info("interview_complete", user_id=self.user_id)
