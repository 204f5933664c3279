"""
Tests for the question catalog, Odyssey constants and Career Canvas helpers.
"""

from undercurrent.schemas.interview_data import (
    CANVAS_KEYS,
    MAIN_QUESTIONS,
    ODYSSEY_DIMENSION_IDS,
    ODYSSEY_PATH_IDS,
    ODYSSEY_PLANS_QUESTION,
    ODYSSEY_RATING_QUESTION,
    QUESTIONS,
    SECTIONS,
    TOTAL_MAIN_QUESTIONS,
    count_filled_canvas_fields,
    get_question,
    get_section,
    is_canvas_ready,
)


class TestCatalog:
    def test_sections_and_questions(self):
        assert len(SECTIONS) == 8
        assert len(QUESTIONS) == 19
        assert [q.id for q in QUESTIONS] == list(range(1, 20))

    def test_every_question_belongs_to_a_section(self):
        section_ids = {s.id for s in SECTIONS}
        for question in QUESTIONS:
            assert question.section_id in section_ids
            assert question.text
            assert question.frameworks

    def test_main_questions_exclude_the_rating_question(self):
        assert TOTAL_MAIN_QUESTIONS == 18
        assert ODYSSEY_RATING_QUESTION not in MAIN_QUESTIONS
        assert ODYSSEY_PLANS_QUESTION in MAIN_QUESTIONS
        assert MAIN_QUESTIONS[-1].id == 19

    def test_odyssey_markers(self):
        assert ODYSSEY_PLANS_QUESTION.id == 17
        assert ODYSSEY_RATING_QUESTION.id == 18

    def test_lookup(self):
        assert get_question(1).section_id == 1
        assert get_question(99) is None
        assert get_section(8).number == "08"


class TestOdysseyConstants:
    def test_paths_and_dimensions(self):
        assert ODYSSEY_PATH_IDS == ("path_a", "path_b", "path_c")
        assert ODYSSEY_DIMENSION_IDS == ("engagement", "energy", "confidence", "coherence")


class TestCareerCanvas:
    def test_eight_blocks(self):
        assert len(CANVAS_KEYS) == 8
        assert "value_proposition" in CANVAS_KEYS

    def test_ready_needs_four_filled_fields(self):
        canvas = {key: "" for key in CANVAS_KEYS}
        canvas.update({"key_resources": "Writing", "customers": "Founders", "channels": "   "})
        assert count_filled_canvas_fields(canvas) == 2
        assert not is_canvas_ready(canvas)

        canvas.update({"key_partners": "Mentors", "cost_structure": "Runway"})
        assert count_filled_canvas_fields(canvas) == 4
        assert is_canvas_ready(canvas)
