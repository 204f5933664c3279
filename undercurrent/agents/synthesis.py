"""
Synthesis and Career Canvas generators.

Both reduce the full answer set through a JSON-mode LLM call:
- SynthesisGenerator: six narrative fields for the final report
- CareerCanvasGenerator: suggestions for the eight canvas blocks

Missing or blank fields are not errors; the report omits them.
"""

import asyncio
import functools
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Sequence

import structlog

from ..concurrency import run_blocking
from ..exceptions import SynthesisUnavailableError
from ..llm.base import Message
from ..prompts.coaching_prompts import (
    CANVAS_SYSTEM_PROMPT,
    SYNTHESIS_SYSTEM_PROMPT,
    create_canvas_prompt,
    create_synthesis_prompt,
)
from ..schemas.interview_data import CANVAS_KEYS
from ..schemas.session import Answer

logger = structlog.get_logger(__name__)


def _as_text(value: Any) -> Optional[str]:
    """Coerce a model value to stripped text; lists become newline-separated lines."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = "\n".join(str(item).strip() for item in value if str(item).strip())
    text = str(value).strip()
    return text or None


@dataclass
class SynthesisReport:
    """The six narrative fields of the synthesis report. None means omit."""
    hedgehog_overlap: Optional[str] = None
    zone_of_genius: Optional[str] = None
    ikigai_sweet_spot: Optional[str] = None
    energy_patterns_positive: Optional[str] = None
    energy_patterns_draining: Optional[str] = None
    key_insight: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SynthesisReport":
        """Build from model output, ignoring unknown keys."""
        return cls(**{f.name: _as_text(data.get(f.name)) for f in fields(cls)})

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def present_fields(self) -> list:
        return [f.name for f in fields(self) if getattr(self, f.name)]

    @property
    def is_empty(self) -> bool:
        return not self.present_fields


def _answer_context(answers: Sequence[Answer]):
    return [(a.question_id, a.full_text) for a in answers]


class _JsonGenerator:
    def __init__(self, llm, timeout: float = 60.0):
        """
        Args:
            llm: Object with chat_json(messages) -> dict
            timeout: Seconds before the call is abandoned
        """
        self.llm = llm
        self.timeout = timeout

    async def _call(self, messages: list, kind: str) -> Dict[str, Any]:
        try:
            return await run_blocking(
                functools.partial(self.llm.chat_json, messages, timeout=self.timeout),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("generation_timeout", kind=kind, timeout=self.timeout)
            raise SynthesisUnavailableError(f"{kind} generation timed out") from e
        except Exception as e:
            logger.warning("generation_failed", kind=kind, error=str(e))
            raise SynthesisUnavailableError(f"{kind} generation failed: {e}") from e


class SynthesisGenerator(_JsonGenerator):
    """Reduces the interview into the six-field synthesis report."""

    async def generate(
        self,
        answers: Sequence[Answer],
        user_name: Optional[str] = None,
    ) -> SynthesisReport:
        """
        Raises:
            SynthesisUnavailableError: If the LLM fails or returns something other than a JSON object
        """
        messages = [
            Message(role="system", content=SYNTHESIS_SYSTEM_PROMPT),
            Message(role="user", content=create_synthesis_prompt(_answer_context(answers), user_name)),
        ]
        data = await self._call(messages, "synthesis")
        report = SynthesisReport.from_dict(data)
        logger.info("synthesis_generated", fields=report.present_fields)
        return report


class CareerCanvasGenerator(_JsonGenerator):
    """Suggests text for the eight Career Canvas blocks."""

    async def generate(self, answers: Sequence[Answer]) -> Dict[str, str]:
        """
        Returns:
            All eight canvas keys; blocks the model left out are empty strings

        Raises:
            SynthesisUnavailableError: If the LLM fails
        """
        messages = [
            Message(role="system", content=CANVAS_SYSTEM_PROMPT),
            Message(role="user", content=create_canvas_prompt(_answer_context(answers))),
        ]
        data = await self._call(messages, "canvas")
        return {key: _as_text(data.get(key)) or "" for key in CANVAS_KEYS}
