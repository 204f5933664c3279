"""
Prompt templates for the career coach.
"""

from .coaching_prompts import (
    COACHING_FALLBACK_TEXT,
    SYNTHESIS_KEYS,
    build_answer_context,
    create_coaching_system_prompt,
    create_coaching_user_prompt,
    create_canvas_prompt,
    create_synthesis_prompt,
)

__all__ = [
    "COACHING_FALLBACK_TEXT",
    "SYNTHESIS_KEYS",
    "build_answer_context",
    "create_coaching_system_prompt",
    "create_coaching_user_prompt",
    "create_canvas_prompt",
    "create_synthesis_prompt",
]
