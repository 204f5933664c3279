"""
Interview catalog for the career discovery interview.

Defines the fixed interview content:
- 8 sections and 19 questions, each tagged with the frameworks it probes
- The Odyssey paths and rating dimensions
- The eight Career Canvas blocks
"""

from dataclasses import dataclass, field
from typing import Optional


FRAMEWORKS = (
    "Hedgehog",
    "Ikigai",
    "Design Your Life",
    "Zone of Genius",
    "Strengths",
    "Career Canvas",
)


@dataclass(frozen=True)
class Section:
    """Thematic grouping of questions."""
    id: int
    number: str
    title: str
    subtitle: str
    color: str


@dataclass(frozen=True)
class Question:
    """A single interview question."""
    id: int
    section_id: int
    text: str
    frameworks: tuple
    follow_ups: tuple = field(default_factory=tuple)
    ai_note: Optional[str] = None  # Hint for the coach, never spoken
    is_odyssey_plans: bool = False
    is_odyssey_rating: bool = False


@dataclass(frozen=True)
class OdysseyPath:
    id: str
    label: str
    title: str
    description: str
    color: str


@dataclass(frozen=True)
class OdysseyDimension:
    id: str
    label: str
    description: str


@dataclass(frozen=True)
class CanvasBlock:
    id: str
    title: str
    description: str
    placeholder: str


# =============================================================================
# SECTIONS
# =============================================================================
SECTIONS = (
    Section(1, "01", "The Warm-Up", "Understanding where you are right now", "#1B2A4A"),
    Section(2, "02", "Passion & Energy", "Discovering what lights you up vs. what drains you", "#2A3F6F"),
    Section(3, "03", "Skills & Genius", "Separating what you're great at from what makes you come alive", "#1E4D6B"),
    Section(4, "04", "Purpose & The World", "Connecting your drive to something bigger", "#2D5A4A"),
    Section(5, "05", "The Economic Engine", "Getting real about money and market value", "#4A3A1B"),
    Section(6, "06", "Prototyping the Future", "Moving from thinking to doing", "#3A1B4A"),
    Section(7, "07", "Career Canvas", "Mapping the business model of you", "#1B3A4A"),
    Section(8, "08", "Synthesis", "Connecting the dots", "#1B2A4A"),
)


# =============================================================================
# QUESTIONS
# =============================================================================
QUESTIONS = (
    # Section 1: The Warm-Up
    Question(
        id=1,
        section_id=1,
        text="Tell me about where you are right now in your career. What's the honest version?",
        frameworks=("Hedgehog", "Ikigai"),
        follow_ups=(
            "What does a typical week look like?",
            "If you had to rate your satisfaction from 1-10, what number comes to mind?",
            "What's the thing that's been nagging at you most?",
        ),
        ai_note="Listen for energy shifts. Where do they light up? Where do they deflate?",
    ),
    Question(
        id=2,
        section_id=1,
        text="When you imagine being stuck in your current situation five years from now, what feeling comes up?",
        frameworks=("Design Your Life",),
        follow_ups=(
            "Is it the work itself, the environment, the people, or something else?",
            "What would you miss if you left tomorrow?",
        ),
    ),
    Question(
        id=3,
        section_id=1,
        text="Who in your life has a career that makes you think 'I want something like that'? "
             "What specifically appeals to you about it?",
        frameworks=("Ikigai", "Zone of Genius"),
        follow_ups=(
            "Is it what they do, how they do it, or the life it gives them?",
            "What do they seem to have that you feel you're missing?",
        ),
    ),
    # Section 2: Passion & Energy
    Question(
        id=4,
        section_id=2,
        text="Think about the last time you were so absorbed in something that you lost track of time. "
             "What were you doing?",
        frameworks=("Hedgehog", "Zone of Genius"),
        follow_ups=(
            "Was this at work or outside of work?",
            "What specifically about it pulled you in?",
            "How often does that feeling happen in your current role?",
        ),
        ai_note="This is flow state, a strong signal for Zone of Genius territory.",
    ),
    Question(
        id=5,
        section_id=2,
        text="What parts of your current or past work give you energy, even when they're hard?",
        frameworks=("Zone of Genius", "Strengths"),
        follow_ups=(
            "Think about specific tasks, not job titles.",
            "What's the difference between work that's hard-and-satisfying vs. hard-and-draining?",
        ),
    ),
    Question(
        id=6,
        section_id=2,
        text="What do people always come to you for help with? And do you actually enjoy that thing?",
        frameworks=("Strengths", "Hedgehog"),
        follow_ups=(
            "Is there anything you're known for that you secretly wish you could stop doing?",
            "What would you want to be known for instead?",
        ),
        ai_note="The gap between 'what I'm asked to do' and 'what I love doing' is often where "
                "people get stuck in their Zone of Excellence.",
    ),
    Question(
        id=7,
        section_id=2,
        text="Outside of work, what do you spend your time and money learning about? "
             "What YouTube rabbit holes do you go down?",
        frameworks=("Ikigai", "Hedgehog"),
        follow_ups=(
            "If you had a fully-funded sabbatical year, what would you study or build?",
            "What topics can you talk about for hours without getting bored?",
        ),
    ),
    # Section 3: Skills & Genius
    Question(
        id=8,
        section_id=3,
        text="What are you genuinely one of the best at in your professional world? "
             "Not just good. Where do you have an unfair advantage?",
        frameworks=("Hedgehog", "Strengths"),
        follow_ups=(
            "What comes naturally to you that seems to be hard for others?",
            "What did you learn faster than your peers?",
            "If you had to teach a masterclass, what would the topic be?",
        ),
    ),
    Question(
        id=9,
        section_id=3,
        text="Now the harder question: What are you excellent at that you'd be relieved to never do again?",
        frameworks=("Zone of Genius",),
        follow_ups=(
            "This is the trap of your Zone of Excellence. You get paid well, get praised, "
            "but it quietly drains you.",
            "What would you delegate tomorrow if you could?",
            "What do you do on autopilot that impresses people but bores you?",
        ),
        ai_note="This is often the most revelatory question. Many people have never given "
                "themselves permission to name this.",
    ),
    Question(
        id=10,
        section_id=3,
        text="Think about your top three strengths. For each one, tell me: is it a natural talent "
             "or a skill you built through discipline?",
        frameworks=("Strengths", "Career Canvas"),
        follow_ups=(
            "Which ones feel effortless? Which ones feel earned?",
            "Which ones would you want to keep building on for the next decade?",
        ),
    ),
    # Section 4: Purpose & The World
    Question(
        id=11,
        section_id=4,
        text="What problem in the world makes you angry or frustrated enough that you'd want to "
             "work on it even if the pay wasn't great?",
        frameworks=("Ikigai",),
        follow_ups=(
            "Think about industries, communities, or causes.",
            "When you read the news, what stories pull you in?",
            "Is there a group of people you feel drawn to help?",
        ),
    ),
    Question(
        id=12,
        section_id=4,
        text="If you could wave a magic wand and your work directly improved 1,000 people's lives, "
             "what would that improvement look like?",
        frameworks=("Ikigai", "Hedgehog"),
        follow_ups=(
            "What would those people thank you for?",
            "How would their lives be different because of your work?",
        ),
    ),
    Question(
        id=13,
        section_id=4,
        text="What does 'meaningful work' actually mean to you? Be specific, not the Instagram version.",
        frameworks=("Ikigai", "Design Your Life"),
        follow_ups=(
            "Is meaning about impact, mastery, autonomy, connection, or something else?",
            "Have you ever had meaningful work? What made it feel that way?",
            "How much does meaning matter vs. compensation in your next move?",
        ),
    ),
    # Section 5: The Economic Engine
    Question(
        id=14,
        section_id=5,
        text="What's your financial floor? What's the minimum income you need to feel stable and not stressed?",
        frameworks=("Hedgehog", "Career Canvas"),
        follow_ups=(
            "And what's your target, the number that would make you feel like you're thriving?",
            "How flexible is that number? Could you trade income for freedom or meaning?",
        ),
    ),
    Question(
        id=15,
        section_id=5,
        text="Right now, what are people and companies actually willing to pay top dollar for "
             "that you can deliver?",
        frameworks=("Hedgehog", "Career Canvas"),
        follow_ups=(
            "What skills or expertise do you have that are in high demand?",
            "Where does your experience command a premium?",
            "Is there a gap between what you're paid for now and what you'd want to be paid for?",
        ),
    ),
    Question(
        id=16,
        section_id=5,
        text="If you had to make money three completely different ways using only your existing skills, "
             "what would those three paths be?",
        frameworks=("Career Canvas", "Design Your Life"),
        follow_ups=(
            "Don't filter for 'realistic' yet. Just brainstorm.",
            "Which of these excites you most? Which would you start tomorrow?",
        ),
        ai_note="This is a lightweight version of the Odyssey Plans exercise. Take note of which "
                "path makes them lean forward.",
    ),
    # Section 6: Prototyping the Future
    Question(
        id=17,
        section_id=6,
        text="Let's build three possible five-year futures. No judgments, no filtering.",
        frameworks=("Design Your Life",),
        follow_ups=(
            "Path A: You continue on your current trajectory but make smart tweaks. What does that look like?",
            "Path B: Your current path disappears tomorrow. What do you do instead?",
            "Path C: Money and other people's opinions don't matter. What's the wildcard?",
        ),
        ai_note="These are Odyssey Plans from Design Your Life. Push them to be specific: where they "
                "live, what a Tuesday looks like, who they work with.",
        is_odyssey_plans=True,
    ),
    Question(
        id=18,
        section_id=6,
        text="For each of those three paths, let's rate them on four dimensions from 1 to 5.",
        frameworks=("Design Your Life", "Ikigai"),
        is_odyssey_rating=True,
    ),
    Question(
        id=19,
        section_id=6,
        text="What's the smallest possible experiment you could run in the next two weeks to test "
             "your most exciting path?",
        frameworks=("Design Your Life",),
        follow_ups=(
            "Could you have a coffee chat with someone in that world?",
            "Could you take on a side project or volunteer opportunity?",
            "What would you need to learn, and how could you learn it fast?",
        ),
        ai_note="The goal is action, not more thinking. Help them define something concrete with a deadline.",
    ),
)

# The rating question is collected by the Odyssey sub-flow, not asked in the main flow
MAIN_QUESTIONS = tuple(q for q in QUESTIONS if not q.is_odyssey_rating)
TOTAL_MAIN_QUESTIONS = len(MAIN_QUESTIONS)

ODYSSEY_PLANS_QUESTION = next(q for q in QUESTIONS if q.is_odyssey_plans)
ODYSSEY_RATING_QUESTION = next(q for q in QUESTIONS if q.is_odyssey_rating)


# =============================================================================
# ODYSSEY
# =============================================================================
ODYSSEY_PATHS = (
    OdysseyPath(
        id="path_a",
        label="Path A",
        title="The Tweaked Path",
        description="You continue on your current trajectory but make smart tweaks.",
        color="#4A7FBF",
    ),
    OdysseyPath(
        id="path_b",
        label="Path B",
        title="The Pivot",
        description="Your current path disappears tomorrow. You do something entirely different.",
        color="#7B5EA7",
    ),
    OdysseyPath(
        id="path_c",
        label="Path C",
        title="The Wildcard",
        description="Money and other people's opinions don't matter. Anything goes.",
        color="#C9A84C",
    ),
)

ODYSSEY_DIMENSIONS = (
    OdysseyDimension("engagement", "Engagement", "How absorbed would you be in this work?"),
    OdysseyDimension("energy", "Energy", "Does this path give you energy or take it?"),
    OdysseyDimension("confidence", "Confidence", "How achievable does this feel?"),
    OdysseyDimension("coherence", "Coherence", "Does this align with who you really are?"),
)

ODYSSEY_PATH_IDS = tuple(p.id for p in ODYSSEY_PATHS)
ODYSSEY_DIMENSION_IDS = tuple(d.id for d in ODYSSEY_DIMENSIONS)

MIN_RATING = 1
MAX_RATING = 5
UNRATED = 0


# =============================================================================
# CAREER CANVAS
# =============================================================================
CAREER_CANVAS_BLOCKS = (
    CanvasBlock(
        "key_resources", "KEY RESOURCES",
        "Your skills, talents, strengths, knowledge, network, reputation",
        "What do you bring to the table?",
    ),
    CanvasBlock(
        "key_activities", "KEY ACTIVITIES",
        "The work that energizes you and uses your Zone of Genius",
        "What work makes you come alive?",
    ),
    CanvasBlock(
        "value_proposition", "VALUE PROPOSITION",
        "What you uniquely offer: the problem you solve better than anyone",
        "What do you uniquely offer the world?",
    ),
    CanvasBlock(
        "customers", "CUSTOMERS",
        "Who benefits from your work? Employers, clients, users, communities",
        "Who do you serve?",
    ),
    CanvasBlock(
        "channels", "CHANNELS",
        "How do people find you? LinkedIn, referrals, portfolio, speaking, content",
        "How do people discover you?",
    ),
    CanvasBlock(
        "revenue_streams", "REVENUE STREAMS",
        "How does this become income? Salary, consulting, products, equity",
        "How does this become money?",
    ),
    CanvasBlock(
        "key_partners", "KEY PARTNERS",
        "Who do you need? Mentors, collaborators, sponsors, communities",
        "Who do you need in your corner?",
    ),
    CanvasBlock(
        "cost_structure", "COST STRUCTURE",
        "What does this require? Time, education, relocation, financial runway",
        "What does this path cost you?",
    ),
)

CANVAS_KEYS = tuple(b.id for b in CAREER_CANVAS_BLOCKS)
CANVAS_MIN_FILLED = 4

NEXT_STEP_COUNT = 3


SECTION_MAP = {s.id: s for s in SECTIONS}
QUESTION_MAP = {q.id: q for q in QUESTIONS}


def get_section(section_id: int) -> Section:
    """Get section by id."""
    return SECTION_MAP[section_id]


def get_question(question_id: int) -> Optional[Question]:
    """Get question by id, or None if the id is not in the catalog."""
    return QUESTION_MAP.get(question_id)


def get_main_question(index: int) -> Question:
    """Get main-flow question by zero-based index."""
    return MAIN_QUESTIONS[index]


def count_filled_canvas_fields(canvas: dict) -> int:
    """Number of canvas blocks with non-blank text."""
    return sum(1 for key in CANVAS_KEYS if str(canvas.get(key) or "").strip())


def is_canvas_ready(canvas: dict) -> bool:
    """True when enough canvas blocks are filled to generate the report."""
    return count_filled_canvas_fields(canvas) >= CANVAS_MIN_FILLED
