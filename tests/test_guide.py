"""
Unit tests for discussion guide parsing.
"""
import pytest

from interview_matrix.guide import (
    MAX_GUIDE_QUESTIONS,
    GuideError,
    GuideSection,
    add_question,
    add_section,
    add_subsection,
    flatten_guide,
    load_guide_file,
    parse_guide,
    parse_guide_text,
)
from interview_matrix.models import GuideItem

FREE_TEXT_GUIDE = """
Introduction and consent

# Warm-up
- Tell me about your role and the unit you work in.
- Thank you for joining this interview today.

# Current Practices
How do you assess a new patient today?

## Assessment
1. Which tools do you use for wound assessment?
"""


class TestStructuredGuide:
    """Test list-based guides."""

    def test_mappings_and_strings(self):
        items = parse_guide(
            [
                {"theme": "Warm-up", "question": "Tell me about your role."},
                {"question_type": "Trials", "question": "How do you run product trials?"},
                {"question": "Anything else?"},
                "What would you change?",
            ]
        )

        assert items == [
            GuideItem(theme="Warm-up", question="Tell me about your role."),
            GuideItem(theme="Trials", question="How do you run product trials?"),
            GuideItem(theme="General", question="Anything else?"),
            GuideItem(theme="General", question="What would you change?"),
        ]

    @pytest.mark.parametrize(
        "value",
        [
            [],
            [{"theme": "Warm-up"}],
            [{"theme": "Warm-up", "question": "   "}],
            [42],
            {"question": "not a list"},
        ],
    )
    def test_invalid_guides(self, value):
        with pytest.raises(GuideError):
            parse_guide(value)

    def test_too_many_questions(self):
        with pytest.raises(GuideError):
            parse_guide([f"Question number {i}?" for i in range(MAX_GUIDE_QUESTIONS + 1)])


class TestFreeTextGuide:
    """Test free-text guide parsing."""

    def test_sections_subsections_and_boilerplate(self):
        items = parse_guide_text(FREE_TEXT_GUIDE)

        assert items == [
            GuideItem(theme="Warm-up", question="Tell me about your role and the unit you work in."),
            GuideItem(theme="Current Practices", question="How do you assess a new patient today?"),
            GuideItem(theme="Current Practices", question="Which tools do you use for wound assessment?"),
        ]

    def test_questions_before_first_header_are_general(self):
        items = parse_guide_text("What does a typical shift look like?\n\nSECTION 2: Budget\n- Who approves new products?")

        assert items == [
            GuideItem(theme="General", question="What does a typical shift look like?"),
            GuideItem(theme="Budget", question="Who approves new products?"),
        ]

    def test_caps_and_letter_headers(self):
        items = parse_guide_text("CHALLENGES:\n- What slows you down most?\nB. Trials\n- How long do trials usually take?")

        assert [i.theme for i in items] == ["CHALLENGES", "Trials"]

    def test_short_items_are_skipped(self):
        with pytest.raises(GuideError):
            parse_guide_text("# Warm-up\n- Role?\n- Unit?")

    def test_text_is_parsed_through_parse_guide(self):
        assert parse_guide("# Warm-up\n- Tell me about your role.") == [
            GuideItem(theme="Warm-up", question="Tell me about your role.")
        ]


class TestBuilders:
    """Test the immutable guide builders."""

    def test_builders_do_not_modify_their_input(self):
        empty: tuple[GuideSection, ...] = ()
        one = add_section(empty, " Warm-up ")
        two = add_question(one, "Tell me about your role.", section_index=0)
        three = add_subsection(two, 0, "Details")
        four = add_question(three, "Which unit do you work in?", section_index=0, subsection_index=0)

        assert empty == ()
        assert one[0].questions == ()
        assert three[0].subsections[0].questions == ()
        assert four[0].title == "Warm-up"
        assert four[0].questions == ("Tell me about your role.",)
        assert four[0].subsections[0].questions == ("Which unit do you work in?",)

    def test_invalid_index(self):
        sections = add_section((), "Warm-up")
        with pytest.raises(IndexError):
            add_question(sections, "Tell me about your role.", section_index=3)

    def test_flatten_puts_section_questions_first(self):
        sections = add_section((), "Warm-up")
        sections = add_subsection(sections, 0, "Details")
        sections = add_question(sections, "Sub question here?", section_index=0, subsection_index=0)
        sections = add_question(sections, "Main question here?", section_index=0)

        assert [i.question for i in flatten_guide(sections)] == ["Main question here?", "Sub question here?"]


class TestGuideFiles:
    """Test loading guides from files."""

    def test_yaml_with_guide_key(self, tmp_path):
        path = tmp_path / "guide.yaml"
        path.write_text("guide:\n  - theme: Trials\n    question: How do you run trials?\n", encoding="utf-8")

        assert load_guide_file(path) == [GuideItem(theme="Trials", question="How do you run trials?")]

    def test_markdown_file(self, tmp_path):
        path = tmp_path / "guide.md"
        path.write_text(FREE_TEXT_GUIDE, encoding="utf-8")

        assert len(load_guide_file(path)) == 3

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "guide.docx"
        path.write_text("x", encoding="utf-8")

        with pytest.raises(GuideError):
            load_guide_file(path)
