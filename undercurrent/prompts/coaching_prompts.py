"""
Prompt templates for the career coach.

Three prompts are used over the course of an interview:
- the coaching reflection after each main answer (spoken, 2-4 sentences)
- the Career Canvas suggestions (JSON, eight fixed keys)
- the synthesis report (JSON, six narrative fields)
"""

from typing import Iterable, Optional, Tuple

from ..schemas.interview_data import CANVAS_KEYS, Question, get_question, get_section

SYNTHESIS_KEYS = (
    "hedgehog_overlap",
    "zone_of_genius",
    "ikigai_sweet_spot",
    "energy_patterns_positive",
    "energy_patterns_draining",
    "key_insight",
)

COACHING_FALLBACK_TEXT = "Thank you for sharing that."

COACH_SYSTEM_PROMPT = """You are a warm, insightful career coach conducting a structured career discovery interview.
You are using six frameworks: Hedgehog Concept, Ikigai, Design Your Life, Zone of Genius, CliftonStrengths, and Career Canvas.

Your role right now:
- Acknowledge the user's answer warmly and specifically (reference what they actually said)
- Reflect back any patterns or insights you notice
- Be curious and encouraging, never judgmental
- If the answer is surface-level or vague, gently invite them to go deeper with ONE specific follow-up question
- If the answer is rich and thoughtful, simply affirm and transition naturally
- Keep your response to 2-4 sentences max. You are a coach in a spoken conversation
- Do NOT repeat the question back to them
- Do NOT use generic filler phrases like "That's great!" or "Wonderful!"
- Reference earlier answers when you notice a meaningful pattern
- Write for SPOKEN delivery. Avoid bullet points, markdown, or lists"""

CANVAS_SYSTEM_PROMPT = (
    "You are a career strategist. Based on a user's career discovery interview answers, "
    "generate concise, specific Career Canvas entries. Return JSON only."
)

SYNTHESIS_SYSTEM_PROMPT = (
    "You are a career strategist synthesizing a career discovery interview. "
    "Write in second person (\"you\"), be specific and personal, referencing actual things "
    "the person said. Be insightful, warm, and direct. Return JSON only."
)


def build_answer_context(answers: Iterable[Tuple[int, str]]) -> str:
    """
    Render earlier answers as a context block for the LLM.

    Args:
        answers: (question_id, answer_text) pairs in interview order

    Returns:
        Context block, or an empty string when there are no answers
    """
    lines = []
    for question_id, text in answers:
        question = get_question(question_id)
        if question:
            lines.append(f'Q{question.id} ({", ".join(question.frameworks)}): "{text}"')
        else:
            lines.append(f'Q{question_id}: "{text}"')

    if not lines:
        return ""
    return "\n\nPrevious answers for context:\n" + "\n".join(lines)


def create_coaching_system_prompt(answers: Iterable[Tuple[int, str]]) -> str:
    return COACH_SYSTEM_PROMPT + build_answer_context(answers)


def create_coaching_user_prompt(question: Question, answer: str) -> str:
    """The user turn for a coaching call: which question, and what they said."""
    section = get_section(question.section_id)
    prompt = (
        f'The user just answered Question {question.id} from Section "{section.title}":\n\n'
        f'Question: "{question.text}"\n'
        f"Frameworks: {', '.join(question.frameworks)}\n"
        f'Their answer: "{answer}"\n'
    )
    if question.ai_note:
        prompt += f"Coaching note (do not read aloud): {question.ai_note}\n"
    prompt += "\nRespond as their career coach. Write naturally for spoken delivery."
    return prompt


def create_canvas_prompt(answers: Iterable[Tuple[int, str]]) -> str:
    return (
        "Based on these interview answers, generate a Career Canvas for this person."
        f"{build_answer_context(answers)}\n\n"
        f"Return JSON with these exact keys: {', '.join(CANVAS_KEYS)}.\n"
        "Each value should be 2-3 specific bullet points as a single string separated by newlines. "
        "Be specific to their actual answers, not generic."
    )


def create_synthesis_prompt(answers: Iterable[Tuple[int, str]], user_name: Optional[str] = None) -> str:
    return (
        f"Generate a synthesis report for {user_name or 'this person'} based on their "
        f"career discovery interview.{build_answer_context(answers)}\n\n"
        "Return JSON with these exact keys:\n"
        "- hedgehog_overlap: 2-3 sentences on where their passion, skill, and economic value intersect\n"
        "- zone_of_genius: 2-3 sentences identifying their true Zone of Genius vs. Zone of Excellence trap\n"
        "- ikigai_sweet_spot: 2-3 sentences on where their gifts meet a real need in the world\n"
        "- energy_patterns_positive: 3-5 specific things that give them energy (as a string with newlines)\n"
        "- energy_patterns_draining: 3-5 specific things that drain their energy (as a string with newlines)\n"
        "- key_insight: One powerful, personalized insight that ties everything together (2-3 sentences)"
    )
