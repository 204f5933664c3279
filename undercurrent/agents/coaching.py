"""
Coaching Response Generator.

Produces the short spoken reflection the coach gives after each main
answer. Every call is time-bounded and fallible; callers decide how to
carry on without it.
"""

import asyncio
import functools
from dataclasses import dataclass
from typing import Optional, Sequence

import structlog

from ..concurrency import run_blocking
from ..exceptions import CoachingUnavailableError
from ..llm.base import Message
from ..prompts.coaching_prompts import (
    COACHING_FALLBACK_TEXT,
    create_coaching_system_prompt,
    create_coaching_user_prompt,
)
from ..schemas.interview_data import Question

logger = structlog.get_logger(__name__)


@dataclass
class PreviousAnswer:
    """An earlier answer in this interview, with the coach's reply to it."""
    question_id: int
    answer: str
    ai_response: Optional[str] = None


class CoachingResponseGenerator:
    """
    Wraps the LLM to produce a 2-4 sentence coaching reflection.

    Usage:
        coach = CoachingResponseGenerator(LLMManager(), timeout=20)
        text = await coach.generate(question, "I feel stuck", previous_answers)
    """

    def __init__(self, llm, timeout: float = 20.0, max_tokens: int = 300):
        """
        Args:
            llm: Object with chat(messages, max_tokens=...) -> LLMResponse
            timeout: Seconds before the call is abandoned
            max_tokens: Reply length cap
        """
        self.llm = llm
        self.timeout = timeout
        self.max_tokens = max_tokens

    def build_messages(
        self,
        question: Question,
        answer: str,
        previous_answers: Sequence[PreviousAnswer] = (),
    ) -> list:
        context = [(p.question_id, p.answer) for p in previous_answers]
        return [
            Message(role="system", content=create_coaching_system_prompt(context)),
            Message(role="user", content=create_coaching_user_prompt(question, answer)),
        ]

    async def generate(
        self,
        question: Question,
        answer: str,
        previous_answers: Sequence[PreviousAnswer] = (),
    ) -> str:
        """
        Generate the coaching reflection for an answer.

        Returns:
            Reflection text (a neutral acknowledgement if the model returns nothing)

        Raises:
            CoachingUnavailableError: On timeout or any LLM failure
        """
        messages = self.build_messages(question, answer, previous_answers)

        try:
            response = await run_blocking(
                functools.partial(self.llm.chat, messages, max_tokens=self.max_tokens, timeout=self.timeout),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("coaching_timeout", question_id=question.id, timeout=self.timeout)
            raise CoachingUnavailableError(
                f"Coaching response timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            logger.warning("coaching_failed", question_id=question.id, error=str(e))
            raise CoachingUnavailableError(f"Coaching response failed: {e}") from e

        content = (response.content or "").strip()
        if not content:
            return COACHING_FALLBACK_TEXT
        return content
