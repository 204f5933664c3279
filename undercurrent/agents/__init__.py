"""
Interview agents: the flow controller, the Odyssey sub-flow and the
LLM-backed coaching and synthesis generators.
"""

from .coaching import CoachingResponseGenerator, PreviousAnswer
from .synthesis import SynthesisGenerator, CareerCanvasGenerator, SynthesisReport
from .odyssey import OdysseyFlow, OdysseyPhase
from .interview_flow import (
    InterviewFlowController,
    ConversationMode,
    FlowStage,
    SubmitResult,
)

__all__ = [
    "CoachingResponseGenerator",
    "PreviousAnswer",
    "SynthesisGenerator",
    "CareerCanvasGenerator",
    "SynthesisReport",
    "OdysseyFlow",
    "OdysseyPhase",
    "InterviewFlowController",
    "ConversationMode",
    "FlowStage",
    "SubmitResult",
]
