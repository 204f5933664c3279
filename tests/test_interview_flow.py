"""
Tests for the interview flow controller: main/follow-up transitions,
fail-open coaching, the in-flight guard, resume and the Odyssey handoff.
"""

import asyncio

import pytest

from conftest import FakeLLM, FakePlayer, FakeSynthesizer
from undercurrent.agents.coaching import CoachingResponseGenerator
from undercurrent.agents.interview_flow import ConversationMode, FlowStage, InterviewFlowController
from undercurrent.agents.odyssey import OdysseyPhase
from undercurrent.exceptions import (
    CoachingUnavailableError,
    FlowStateError,
    InvalidAnswerError,
    LLMUnavailableError,
    SessionUnavailableError,
    StoreError,
    SubmissionInProgressError,
)
from undercurrent.schemas.interview_data import MAIN_QUESTIONS, ODYSSEY_DIMENSION_IDS, SECTIONS
from undercurrent.voice.controller import SpeakOutcome, VoiceController, VoiceState


def make_flow(store, coach, user_id="user-1", **kwargs):
    flow = InterviewFlowController(store, user_id, coach, **kwargs)
    flow.start()
    return flow


def seed_answers(store, user_id, questions):
    session = store.get_or_create(user_id)
    for question in questions:
        store.upsert_answer(session.id, question.id, f"answer {question.id}")
    return session


async def answer_and_skip(flow, text="A thoughtful answer"):
    result = await flow.submit_answer(text)
    if flow.stage == FlowStage.MAIN and flow.mode == ConversationMode.FOLLOWUP:
        flow.advance()
    return result


class BlockingCoach:
    """Coach whose reply is held until release() is called."""

    def __init__(self):
        self.release_event = None
        self.calls = 0

    async def generate(self, question, answer, previous_answers):
        self.calls += 1
        self.release_event = asyncio.Event()
        await self.release_event.wait()
        return "Held reply"

    def release(self):
        self.release_event.set()


# ═══════════════════════════════════════════════════════════════
# MAIN / FOLLOW-UP
# ═══════════════════════════════════════════════════════════════

class TestFollowUpFlow:
    def test_answer_then_follow_up_reply(self, store, llm, coach):
        flow = make_flow(store, coach)
        assert flow.current_question.id == 1

        result = asyncio.run(flow.submit_answer("I am a product manager feeling stuck"))
        assert result.question_id == 1
        assert result.mode == ConversationMode.FOLLOWUP
        assert result.ai_response == llm.reply
        assert flow.mode == ConversationMode.FOLLOWUP
        assert flow.current_question.id == 1

        answers = store.list_answers(flow.session.id)
        assert answers[0].answer == "I am a product manager feeling stuck"
        assert answers[0].ai_response == llm.reply
        assert len(llm.calls) == 1

        result = asyncio.run(flow.submit_answer("yes exactly"))
        assert result.advanced
        assert flow.mode == ConversationMode.MAIN
        assert flow.current_question.id == 2
        assert store.list_answers(flow.session.id)[0].follow_up == "yes exactly"
        # Follow-up replies never call the coach
        assert len(llm.calls) == 1
        assert store.get_or_create("user-1").current_question_id == 2

    def test_skip_follow_up(self, store, coach):
        flow = make_flow(store, coach)
        asyncio.run(flow.submit_answer("answer"))
        next_question = flow.advance()
        assert next_question.id == 2
        assert flow.mode == ConversationMode.MAIN

    def test_previous_answers_feed_the_next_prompt(self, store, llm, coach):
        flow = make_flow(store, coach)
        asyncio.run(answer_and_skip(flow, "I teach on weekends"))
        asyncio.run(flow.submit_answer("Second answer"))

        system_prompt = llm.calls[1][0].content
        assert 'Q1 (Hedgehog, Ikigai): "I teach on weekends"' in system_prompt
        assert flow.previous_answers[0].ai_response == llm.reply

    def test_empty_answer_rejected_before_anything(self, store, llm, coach):
        flow = make_flow(store, coach)
        with pytest.raises(InvalidAnswerError):
            asyncio.run(flow.submit_answer("   "))
        assert store.list_answers(flow.session.id) == []
        assert llm.calls == []
        assert flow.current_question.id == 1

    def test_section_marked_complete_when_leaving_it(self, store, coach):
        flow = make_flow(store, coach)
        for _ in range(3):
            asyncio.run(answer_and_skip(flow))
        assert flow.current_question.section_id == 2
        assert store.get_or_create("user-1").completed_sections == [1]

    def test_welcome_prompt_on_first_question(self, store, coach):
        flow = make_flow(store, coach)
        prompt = flow.prompt_text()
        assert prompt.startswith("Welcome to Undercurrent. I'm your career discovery coach.")
        assert "Let's start with The Warm-Up." in prompt
        assert prompt.endswith(MAIN_QUESTIONS[0].text)

        asyncio.run(answer_and_skip(flow))
        assert flow.prompt_text() == MAIN_QUESTIONS[1].text

    def test_progress(self, store, coach):
        flow = make_flow(store, coach)
        asyncio.run(answer_and_skip(flow))
        progress = flow.progress()
        assert progress["index"] == 1
        assert progress["total"] == 18
        assert progress["section_title"] == "The Warm-Up"


# ═══════════════════════════════════════════════════════════════
# COACHING FAILURES
# ═══════════════════════════════════════════════════════════════

class TestFailOpen:
    def test_llm_error_advances(self, store):
        coach = CoachingResponseGenerator(FakeLLM(error=LLMUnavailableError("down")), timeout=2.0)
        flow = make_flow(store, coach)

        result = asyncio.run(flow.submit_answer("My answer"))
        assert result.coaching_failed
        assert result.advanced
        assert result.ai_response is None
        assert flow.mode == ConversationMode.MAIN
        assert flow.current_question.id == 2

        answers = store.list_answers(flow.session.id)
        assert answers[0].answer == "My answer"
        assert answers[0].ai_response is None

    def test_timeout_advances(self, store):
        coach = CoachingResponseGenerator(FakeLLM(delay=0.3), timeout=0.05)
        flow = make_flow(store, coach)

        result = asyncio.run(flow.submit_answer("My answer"))
        assert result.coaching_failed
        assert flow.current_question.id == 2

    def test_timeout_passed_to_llm_call(self):
        llm = FakeLLM()
        coach = CoachingResponseGenerator(llm, timeout=7.5)
        asyncio.run(coach.generate(MAIN_QUESTIONS[0], "answer"))
        assert llm.options[0]["timeout"] == 7.5

    def test_generator_raises_coaching_unavailable(self):
        coach = CoachingResponseGenerator(FakeLLM(error=RuntimeError("boom")), timeout=1.0)
        with pytest.raises(CoachingUnavailableError):
            asyncio.run(coach.generate(MAIN_QUESTIONS[0], "answer"))

    def test_empty_model_output_uses_fallback(self):
        coach = CoachingResponseGenerator(FakeLLM(reply="  "), timeout=1.0)
        assert asyncio.run(coach.generate(MAIN_QUESTIONS[0], "answer")) == "Thank you for sharing that."


# ═══════════════════════════════════════════════════════════════
# IN-FLIGHT GUARD
# ═══════════════════════════════════════════════════════════════

class TestInFlight:
    def test_second_submission_and_advance_rejected(self, store):
        coach = BlockingCoach()
        flow = make_flow(store, coach)

        async def scenario():
            task = asyncio.create_task(flow.submit_answer("first"))
            while coach.release_event is None:
                await asyncio.sleep(0)
            assert flow.in_flight

            with pytest.raises(SubmissionInProgressError):
                await flow.submit_answer("second")
            with pytest.raises(SubmissionInProgressError):
                flow.advance()

            coach.release()
            return await task

        result = asyncio.run(scenario())
        assert result.question_id == 1
        assert result.ai_response == "Held reply"
        assert not flow.in_flight
        assert coach.calls == 1
        assert [a.answer for a in store.list_answers(flow.session.id)] == ["first"]


# ═══════════════════════════════════════════════════════════════
# VOICE OUTPUT
# ═══════════════════════════════════════════════════════════════

class TestCoachingAudio:
    def test_audio_returned_with_synthesizer(self, store, coach):
        synthesizer = FakeSynthesizer()
        flow = make_flow(store, coach, synthesizer=synthesizer, voice_id="voice-x")
        result = asyncio.run(flow.submit_answer("answer"))
        assert result.audio == synthesizer.audio
        assert synthesizer.calls == [(result.ai_response, "voice-x")]

    def test_no_audio_keeps_text_and_followup(self, store, coach):
        flow = make_flow(store, coach, synthesizer=FakeSynthesizer(audio=None))
        result = asyncio.run(flow.submit_answer("answer"))
        assert result.audio is None
        assert result.ai_response
        assert result.mode == ConversationMode.FOLLOWUP
        assert result.warnings

    def test_voice_controller_stays_idle_without_audio(self, store, coach):
        voice = VoiceController(FakeSynthesizer(audio=None), player=FakePlayer())
        flow = make_flow(store, coach, voice=voice)

        result = asyncio.run(flow.submit_answer("answer"))
        assert result.speak_outcome == SpeakOutcome.NO_AUDIO
        assert result.ai_response
        assert flow.mode == ConversationMode.FOLLOWUP
        assert voice.state == VoiceState.IDLE


# ═══════════════════════════════════════════════════════════════
# HANDOFF, RESUME, COMPLETION
# ═══════════════════════════════════════════════════════════════

class TestOdysseyHandoff:
    def test_last_main_question_starts_odyssey(self, store, coach):
        seed_answers(store, "user-1", MAIN_QUESTIONS[:-1])
        flow = make_flow(store, coach)
        assert flow.current_question.id == 19

        asyncio.run(flow.submit_answer("My synthesis answer"))
        assert flow.stage == FlowStage.MAIN
        flow.advance()

        assert flow.stage == FlowStage.ODYSSEY
        assert flow.current_question is None
        assert flow.odyssey.current_path_id == "path_a"
        assert flow.odyssey.phase == OdysseyPhase.PATH_ENTRY

        session = store.get_or_create("user-1")
        assert session.current_question_id == 17
        assert session.completed_sections == [s.id for s in SECTIONS]

    def test_odyssey_start_callback(self, store, coach):
        seed_answers(store, "user-1", MAIN_QUESTIONS[:-1])
        started = []
        flow = make_flow(store, coach, on_odyssey_start=started.append)
        flow.advance()
        assert started == [flow.odyssey]

    def test_main_operations_rejected_during_odyssey(self, store, coach):
        seed_answers(store, "user-1", MAIN_QUESTIONS)
        flow = make_flow(store, coach)
        assert flow.stage == FlowStage.ODYSSEY
        with pytest.raises(FlowStateError):
            asyncio.run(flow.submit_answer("late answer"))
        with pytest.raises(FlowStateError):
            flow.advance()


class TestResume:
    def test_resumes_at_first_unanswered(self, store, coach):
        seed_answers(store, "user-1", MAIN_QUESTIONS[:3])
        flow = make_flow(store, coach)
        assert flow.current_question.id == 4
        assert [p.question_id for p in flow.previous_answers] == [1, 2, 3]
        assert flow.mode == ConversationMode.MAIN

    def test_completed_session(self, store, coach):
        store.get_or_create("user-1")
        store.update("user-1", is_complete=True)
        flow = make_flow(store, coach)
        assert flow.stage == FlowStage.COMPLETE

    def test_store_failure_blocks_start(self, coach):
        class BrokenStore:
            def get_or_create(self, user_id):
                raise StoreError("disk full")

        flow = InterviewFlowController(BrokenStore(), "user-1", coach)
        with pytest.raises(SessionUnavailableError):
            flow.start()


def complete_odyssey(odyssey):
    for path_id in ("path_a", "path_b", "path_c"):
        odyssey.submit_path(f"Life on {path_id}")
        for dimension in ODYSSEY_DIMENSION_IDS:
            odyssey.rate(dimension, 4)
        odyssey.finish_path()


class TestCompletion:
    def test_complete_after_all_paths_rated(self, store, coach):
        seed_answers(store, "user-1", MAIN_QUESTIONS)
        flow = make_flow(store, coach)

        complete_odyssey(flow.odyssey)
        assert flow.stage == FlowStage.COMPLETE

        session = store.get_or_create("user-1")
        assert session.is_complete
        assert session.odyssey_ratings["path_c"]["coherence"] == 4

    def test_not_complete_when_last_question_skipped(self, store, coach):
        seed_answers(store, "user-1", MAIN_QUESTIONS[:-1])
        flow = make_flow(store, coach)
        flow.advance()

        complete_odyssey(flow.odyssey)
        assert flow.stage == FlowStage.COMPLETE
        assert store.get_or_create("user-1").is_complete is False
