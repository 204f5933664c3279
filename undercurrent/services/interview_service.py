"""
Interview Service - per-user facade over the interview engine.

Owns one InterviewFlowController and one debounced canvas writer per
user, and wires the LLM, TTS, STT, email and storage collaborators
together. Every per-user operation holds that user's lock; a second
concurrent request for the same user is rejected, never queued.
"""

import asyncio
import secrets
import threading
from contextlib import asynccontextmanager, contextmanager
from typing import Dict, List, Optional

import structlog

from ..agents.coaching import CoachingResponseGenerator
from ..agents.interview_flow import FlowStage, InterviewFlowController, SubmitResult
from ..agents.odyssey import OdysseyFlow
from ..agents.synthesis import CareerCanvasGenerator, SynthesisGenerator, SynthesisReport
from ..config import Settings, get_settings
from ..exceptions import (
    FlowStateError,
    InvalidAnswerError,
    UserBusyError,
    ValidationError,
)
from ..report.email_report import ReportRenderer
from ..schemas.interview_data import (
    CANVAS_KEYS,
    NEXT_STEP_COUNT,
    count_filled_canvas_fields,
    is_canvas_ready,
)
from ..schemas.session import NextStep, Session, UserProfile
from ..storage.session_store import DebouncedSessionWriter, SessionStore
from ..voice.voices import CURATED_VOICES, DEFAULT_VOICE, Voice

logger = structlog.get_logger(__name__)

NO_EMAIL_REASON = "No email on file"
EMAIL_FAILED_REASON = "Email could not be sent, please try again"


class InterviewService:
    """
    Entry point for the transport layer.

    Args:
        store: Session store
        coach: CoachingResponseGenerator
        synthesis: SynthesisGenerator
        canvas_generator: CareerCanvasGenerator
        synthesizer: TTS with synthesize(text, voice_id) -> Optional[bytes]
        transcriber: STT with transcribe(audio_bytes, mime_type)
        email_sender: Object with send(to, subject, html, text) -> bool
        voice_preferences: VoicePreferenceStore
        renderer: ReportRenderer
        canvas_debounce: Seconds to coalesce canvas edits
    """

    def __init__(
        self,
        store: SessionStore,
        coach: CoachingResponseGenerator,
        synthesis: SynthesisGenerator,
        canvas_generator: CareerCanvasGenerator,
        synthesizer=None,
        transcriber=None,
        email_sender=None,
        voice_preferences=None,
        renderer: Optional[ReportRenderer] = None,
        canvas_debounce: float = 0.5,
    ):
        self.store = store
        self.coach = coach
        self.synthesis = synthesis
        self.canvas_generator = canvas_generator
        self.synthesizer = synthesizer
        self.transcriber = transcriber
        self.email_sender = email_sender
        self.voice_preferences = voice_preferences
        self.renderer = renderer or ReportRenderer()
        self.canvas_debounce = canvas_debounce

        self._flows: Dict[str, InterviewFlowController] = {}
        self._writers: Dict[str, DebouncedSessionWriter] = {}
        self._canvas: Dict[str, Dict[str, str]] = {}
        self._reports: Dict[str, SynthesisReport] = {}
        self._user_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # ── Locking ─────────────────────────────────────────────────

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._user_locks.setdefault(user_id, threading.Lock())

    @contextmanager
    def _exclusive(self, user_id: str):
        lock = self._lock_for(user_id)
        if not lock.acquire(blocking=False):
            raise UserBusyError(user_id)
        try:
            yield
        finally:
            lock.release()

    @asynccontextmanager
    async def _exclusive_async(self, user_id: str):
        with self._exclusive(user_id):
            yield

    # ── Users ───────────────────────────────────────────────────

    def register_user(self, name: str = "", email: str = "", user_id: Optional[str] = None) -> UserProfile:
        """
        Create (or update) a user profile and make sure a session exists.

        Raises:
            ValidationError: If the email address is malformed
            SessionUnavailableError: If the session cannot be created
        """
        email = (email or "").strip()
        if email and ("@" not in email or email.startswith("@") or email.endswith("@")):
            raise ValidationError(f"Invalid email address '{email}'")

        profile = UserProfile(
            user_id=user_id or secrets.token_hex(8),
            name=(name or "").strip(),
            email=email,
        )
        with self._exclusive(profile.user_id):
            self.store.save_user(profile)
            self._flow(profile.user_id)
        logger.info("user_registered", user_id=profile.user_id, has_email=bool(email))
        return profile

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        return self.store.get_user(user_id)

    # ── Flow ────────────────────────────────────────────────────

    def _flow(self, user_id: str) -> InterviewFlowController:
        flow = self._flows.get(user_id)
        if flow is None:
            flow = InterviewFlowController(
                self.store,
                user_id,
                self.coach,
                synthesizer=self.synthesizer,
                voice_id=self.get_voice(user_id).voice_id,
            )
            flow.start()
            self._flows[user_id] = flow
        return flow

    def _odyssey(self, flow: InterviewFlowController) -> OdysseyFlow:
        if flow.stage != FlowStage.ODYSSEY or flow.odyssey is None:
            raise FlowStateError(f"Odyssey is not active (stage: {flow.stage.value})")
        return flow.odyssey

    def _writer(self, user_id: str) -> DebouncedSessionWriter:
        writer = self._writers.get(user_id)
        if writer is None:
            writer = DebouncedSessionWriter(self.store, user_id, delay=self.canvas_debounce)
            self._writers[user_id] = writer
        return writer

    def _flush(self, user_id: str) -> Session:
        writer = self._writers.get(user_id)
        if writer is not None:
            flushed = writer.flush()
            if flushed is not None:
                return flushed
        return self.store.get_or_create(user_id)

    def get_state(self, user_id: str) -> dict:
        """Session record plus the live flow position."""
        with self._exclusive(user_id):
            flow = self._flow(user_id)
            session = self._flush(user_id)
            return {
                "session": session.to_dict(),
                "flow": flow.to_dict(),
                "voice": self.get_voice(user_id).to_dict(),
                "canvas_ready": is_canvas_ready(session.career_canvas),
            }

    async def submit_answer(self, user_id: str, text: str, with_audio: bool = True) -> SubmitResult:
        """
        Submit an answer or follow-up reply.

        Raises:
            InvalidAnswerError: If the text is empty
            UserBusyError: If another request for this user is running
        """
        if not (text or "").strip():
            raise InvalidAnswerError()

        async with self._exclusive_async(user_id):
            flow = self._flow(user_id)
            flow.voice_id = self.get_voice(user_id).voice_id
            flow.synthesizer = self.synthesizer if with_audio else None
            return await flow.submit_answer(text)

    def advance(self, user_id: str) -> dict:
        """Skip the follow-up (or question) and return the new flow position."""
        with self._exclusive(user_id):
            flow = self._flow(user_id)
            flow.advance()
            return flow.to_dict()

    # ── Odyssey ─────────────────────────────────────────────────

    def submit_odyssey_path(self, user_id: str, text: str) -> dict:
        with self._exclusive(user_id):
            flow = self._flow(user_id)
            self._odyssey(flow).submit_path(text)
            return flow.to_dict()

    def rate_odyssey(self, user_id: str, dimension: str, value: int) -> dict:
        with self._exclusive(user_id):
            flow = self._flow(user_id)
            self._odyssey(flow).rate(dimension, value)
            return flow.to_dict()

    def finish_odyssey_path(self, user_id: str) -> dict:
        with self._exclusive(user_id):
            flow = self._flow(user_id)
            self._odyssey(flow).finish_path()
            return flow.to_dict()

    # ── Career Canvas & next steps ──────────────────────────────

    def update_canvas(self, user_id: str, fields: Dict[str, str]) -> dict:
        """
        Edit canvas blocks. Writes are debounced; the returned readiness is immediate.

        Raises:
            ValidationError: For unknown canvas keys or non-text values
        """
        unknown = sorted(set(fields) - set(CANVAS_KEYS))
        if unknown:
            raise ValidationError(f"Unknown canvas fields: {', '.join(unknown)}")
        for key, value in fields.items():
            if not isinstance(value, str):
                raise ValidationError(f"Canvas field '{key}' must be text")

        with self._exclusive(user_id):
            canvas = self._canvas.get(user_id)
            if canvas is None:
                canvas = dict(self.store.get_or_create(user_id).career_canvas)
                self._canvas[user_id] = canvas
            canvas.update(fields)
            self._writer(user_id).stage(career_canvas=dict(canvas))
            return {
                "career_canvas": dict(canvas),
                "filled": count_filled_canvas_fields(canvas),
                "ready": is_canvas_ready(canvas),
            }

    def save_next_steps(self, user_id: str, steps: List[dict]) -> List[NextStep]:
        """
        Replace the user's next steps (at most three).

        Raises:
            ValidationError: For too many steps or malformed entries
        """
        if len(steps) > NEXT_STEP_COUNT:
            raise ValidationError(f"At most {NEXT_STEP_COUNT} next steps are allowed")

        parsed = []
        for step in steps:
            if not isinstance(step, dict):
                raise ValidationError("Each next step must be an object with 'action' and 'deadline'")
            action, deadline = step.get("action", ""), step.get("deadline", "")
            if not isinstance(action, str) or not isinstance(deadline, str):
                raise ValidationError("Next step 'action' and 'deadline' must be text")
            parsed.append(NextStep(action.strip(), deadline.strip()))
        parsed += [NextStep() for _ in range(NEXT_STEP_COUNT - len(parsed))]

        with self._exclusive(user_id):
            session = self.store.update(user_id, next_steps=parsed)
        return session.next_steps

    # ── Generation & report ─────────────────────────────────────

    async def generate_canvas(self, user_id: str) -> Dict[str, str]:
        """
        Suggest canvas entries from the answers so far. Suggestions are not saved.

        Raises:
            SynthesisUnavailableError: If the LLM call fails
        """
        async with self._exclusive_async(user_id):
            session = self._flush(user_id)
            answers = self.store.list_answers(session.id)
            return await self.canvas_generator.generate(answers)

    async def generate_synthesis(self, user_id: str) -> SynthesisReport:
        """
        Generate (and remember) the synthesis report.

        Raises:
            SynthesisUnavailableError: If the LLM call fails
        """
        async with self._exclusive_async(user_id):
            session = self._flush(user_id)
            answers = self.store.list_answers(session.id)
            user = self.store.get_user(user_id)
            report = await self.synthesis.generate(answers, user.name if user else None)
            self._reports[user_id] = report
            return report

    async def send_report(self, user_id: str, synthesis: Optional[SynthesisReport] = None) -> dict:
        """
        Render and email the report.

        Returns:
            {"success": bool} plus a "reason" when nothing was sent
        """
        user = self.store.get_user(user_id)
        if user is None or not user.email:
            return {"success": False, "reason": NO_EMAIL_REASON}

        if synthesis is None:
            synthesis = self._reports.get(user_id)
        if synthesis is None:
            synthesis = await self.generate_synthesis(user_id)

        async with self._exclusive_async(user_id):
            session = self._flush(user_id)
            rendered = self.renderer.render(synthesis, session, user.name)

            sent = False
            if self.email_sender is not None:
                sent = await asyncio.to_thread(
                    self.email_sender.send, user.email, rendered.subject, rendered.html, rendered.text
                )
            if not sent:
                logger.warning("report_not_sent", user_id=user_id)
                return {"success": False, "reason": EMAIL_FAILED_REASON}

            if not session.email_sent:
                self.store.update(user_id, email_sent=True)
            logger.info("report_sent", user_id=user_id)
            return {"success": True}

    # ── Voice ───────────────────────────────────────────────────

    def list_voices(self) -> List[Voice]:
        return list(CURATED_VOICES)

    def get_voice(self, user_id: str) -> Voice:
        if self.voice_preferences is None:
            return DEFAULT_VOICE
        return self.voice_preferences.get(user_id)

    def set_voice(self, user_id: str, voice_id: str) -> Voice:
        """
        Raises:
            ValidationError: If the voice is not in the catalog
        """
        if self.voice_preferences is None:
            raise ValidationError("Voice preferences are not available")
        voice = self.voice_preferences.set(user_id, voice_id)
        flow = self._flows.get(user_id)
        if flow is not None:
            flow.voice_id = voice.voice_id
        return voice

    @property
    def tts_available(self) -> bool:
        return self.synthesizer is not None and getattr(self.synthesizer, "is_configured", True)

    async def speak_text(self, user_id: str, text: str, voice_id: Optional[str] = None) -> Optional[bytes]:
        """MP3 for the given text in the user's voice, or None when TTS is unavailable."""
        if not (text or "").strip():
            raise ValidationError("No text provided")
        if self.synthesizer is None:
            return None
        voice_id = voice_id or self.get_voice(user_id).voice_id
        return await asyncio.to_thread(self.synthesizer.synthesize, text, voice_id)

    async def transcribe(self, audio_bytes: bytes, mime_type: str = "audio/m4a") -> str:
        """
        Raises:
            TranscriptionError: If nothing usable was recognized
        """
        if self.transcriber is None:
            raise ValidationError("Transcription is not available")
        result = await asyncio.to_thread(self.transcriber.transcribe, audio_bytes, mime_type)
        return result.text

    # ── Reset ───────────────────────────────────────────────────

    def reset(self, user_id: str) -> Session:
        """Delete all answers and start the interview over."""
        with self._exclusive(user_id):
            writer = self._writers.pop(user_id, None)
            if writer is not None:
                writer.cancel()
            self._flows.pop(user_id, None)
            self._canvas.pop(user_id, None)
            self._reports.pop(user_id, None)
            session = self.store.reset(user_id)
            logger.info("session_reset", user_id=user_id)
            return session


def build_service(settings: Optional[Settings] = None) -> InterviewService:
    """Wire the production collaborators from settings."""
    from ..llm.manager import LLMManager
    from ..report.email_sender import ResendEmailSender
    from ..storage.session_store import JsonSessionStore
    from ..voice.speech_to_text import WhisperTranscriber
    from ..voice.text_to_speech import ElevenLabsSynthesizer
    from ..voice.voices import VoicePreferenceStore

    settings = settings or get_settings()

    llm = LLMManager(settings=settings.llm)

    return InterviewService(
        store=JsonSessionStore(settings.storage.sessions_dir),
        coach=CoachingResponseGenerator(llm, timeout=settings.llm.coaching_timeout),
        synthesis=SynthesisGenerator(llm, timeout=settings.llm.synthesis_timeout),
        canvas_generator=CareerCanvasGenerator(llm, timeout=settings.llm.synthesis_timeout),
        synthesizer=ElevenLabsSynthesizer(
            api_key=settings.voice.elevenlabs_api_key or None,
            model=settings.voice.elevenlabs_model,
            timeout=settings.voice.tts_timeout,
        ),
        transcriber=WhisperTranscriber(
            model_size=settings.voice.whisper_model,
            language=settings.voice.whisper_language,
        ),
        email_sender=ResendEmailSender(
            api_key=settings.email.resend_api_key or None,
            sender=settings.email.sender,
            timeout=settings.email.timeout,
        ),
        voice_preferences=VoicePreferenceStore(settings.storage.voice_preferences_path),
        canvas_debounce=settings.storage.canvas_debounce_seconds,
    )
