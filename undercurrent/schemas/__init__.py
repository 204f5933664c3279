"""
Schema definitions for the career discovery interview.
"""

from .interview_data import (
    Section,
    Question,
    SECTIONS,
    QUESTIONS,
    MAIN_QUESTIONS,
    TOTAL_MAIN_QUESTIONS,
    ODYSSEY_PATHS,
    ODYSSEY_DIMENSIONS,
    CAREER_CANVAS_BLOCKS,
    get_question,
    get_section,
)
from .session import Session, Answer, NextStep, UserProfile

__all__ = [
    "Section",
    "Question",
    "SECTIONS",
    "QUESTIONS",
    "MAIN_QUESTIONS",
    "TOTAL_MAIN_QUESTIONS",
    "ODYSSEY_PATHS",
    "ODYSSEY_DIMENSIONS",
    "CAREER_CANVAS_BLOCKS",
    "get_question",
    "get_section",
    "Session",
    "Answer",
    "NextStep",
    "UserProfile",
]
